from setuptools import setup, find_packages

setup(
    name="hamer",
    version="0.3.0",
    author="H@mer contributors",
    description="A single-pass compiler from the H@mer scripting language to AArch64 Linux assembly",
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        'console_scripts': [
            'hamer = hamer.main:main',
        ],
    },
    extras_require={
        'test': ['pytest>=7'],
    },
    python_requires='>=3.10',
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
)
