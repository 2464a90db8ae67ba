import os
from .errors import ImportResolutionError

SOURCE_EXTENSION = ".hmr"

class SourceUnit:
    """Preprocessed program text plus the origin of every line."""

    def __init__(self, text, line_map, files):
        self.text = text
        self.line_map = line_map  # (filename, line) per combined line
        self.files = files        # included files, in inclusion order

def is_import_line(line):
    parts = line.split()
    return bool(parts) and parts[0].upper() == "GET"

def import_target(line):
    """Return the library name of a `Get "lib"` line, or None."""
    parts = line.split()
    if len(parts) < 2 or not is_import_line(line):
        return None
    return parts[1].replace('"', '')

class ImportResolver:
    """Hoists `Get` imports ahead of the file that requests them.

    Each library is looked up next to the file containing the `Get` line,
    resolved recursively, and injected before that file's own body so
    every definition precedes its first use. A file is included at most
    once, which also ends import cycles.
    """

    def __init__(self, on_include=None):
        self.included = set()
        self.files = []
        self.on_include = on_include

    def resolve_file(self, path):
        path = os.path.abspath(path)
        with open(path, 'r') as f:
            source = f.read()
        return self.resolve_source(source, path)

    def resolve_source(self, source, path):
        path = os.path.abspath(path)
        self.included.add(path)
        self.files.append(path)
        directory = os.path.dirname(path)

        import_lines = []
        import_map = []
        body_lines = []
        body_map = []
        for lineno, line in enumerate(source.splitlines(), start=1):
            if not is_import_line(line):
                body_lines.append(line)
                body_map.append((path, lineno))
                continue
            lib_name = import_target(line)
            if lib_name is None:
                # A bare `Get` names nothing and is dropped.
                continue
            lib_path = os.path.abspath(os.path.join(directory, lib_name + SOURCE_EXTENSION))
            if lib_path in self.included:
                continue
            if not os.path.isfile(lib_path):
                raise ImportResolutionError(f"Could not find library file at {lib_path}", lib_path, lineno)
            lib_lines, lib_map = self.resolve_file(lib_path)
            if self.on_include:
                self.on_include(lib_name, lib_path)
            import_lines.extend(lib_lines)
            import_map.extend(lib_map)

        return import_lines + body_lines, import_map + body_map

def resolve_imports(path, source=None, on_include=None):
    resolver = ImportResolver(on_include)
    if source is None:
        lines, line_map = resolver.resolve_file(path)
    else:
        lines, line_map = resolver.resolve_source(source, path)
    return SourceUnit("\n".join(lines) + "\n", line_map, resolver.files)
