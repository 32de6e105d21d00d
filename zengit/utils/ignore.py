"""Ignore pattern matching for .gitignore files."""

import logging
import re
from pathlib import Path
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

GITIGNORE = '.gitignore'


class IgnorePattern:
    """Represents a single ignore pattern."""

    def __init__(self, pattern: str, negation: bool = False, directory_only: bool = False,
                 base: str = ''):
        """
        Initialize an ignore pattern.

        Args:
            pattern: The glob pattern to match
            negation: If True, this pattern negates (un-ignores) matching files
            directory_only: If True, only match directories
            base: Directory (relative to the repo root) of the ignore file
                  the pattern came from; '' for the root
        """
        self.original = pattern
        self.pattern = pattern
        self.negation = negation
        self.directory_only = directory_only
        self.base = base.strip('/')
        self._regex = self._compile_pattern(pattern)

    def _compile_pattern(self, pattern: str) -> re.Pattern:
        """Convert a gitignore-style pattern to a regex."""
        # A slash anywhere but the end anchors the pattern to its ignore file's directory
        anchored = '/' in pattern
        pattern = pattern.lstrip('/')

        regex_parts = []
        i = 0
        while i < len(pattern):
            c = pattern[i]

            if c == '*':
                if i + 1 < len(pattern) and pattern[i + 1] == '*':
                    if i + 2 < len(pattern) and pattern[i + 2] == '/':
                        # **/ matches zero or more directories
                        regex_parts.append('(?:.*/)?')
                        i += 3
                    else:
                        regex_parts.append('.*')
                        i += 2
                else:
                    regex_parts.append('[^/]*')
                    i += 1
            elif c == '?':
                regex_parts.append('[^/]')
                i += 1
            elif c == '[':
                j = i + 1
                if j < len(pattern) and pattern[j] == '!':
                    j += 1
                if j < len(pattern) and pattern[j] == ']':
                    j += 1
                while j < len(pattern) and pattern[j] != ']':
                    j += 1
                if j < len(pattern):
                    char_class = pattern[i:j + 1]
                    if len(char_class) > 1 and char_class[1] == '!':
                        char_class = '[^' + char_class[2:]
                    regex_parts.append(char_class)
                    i = j + 1
                else:
                    regex_parts.append(re.escape(c))
                    i += 1
            elif c == '\\' and i + 1 < len(pattern):
                regex_parts.append(re.escape(pattern[i + 1]))
                i += 2
            else:
                regex_parts.append(re.escape(c))
                i += 1

        body = ''.join(regex_parts)
        if anchored:
            return re.compile('^' + body + '$')
        return re.compile('(?:^|/)' + body + '$')

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """
        Check if a path matches this pattern.

        Args:
            path: The path to check (relative to repo root)
            is_dir: Whether the path is a directory

        Returns:
            True if the path matches this pattern
        """
        path = path.replace('\\', '/')
        if path.startswith('./'):
            path = path[2:]

        if self.base:
            prefix = self.base + '/'
            if not path.startswith(prefix):
                return False
            path = path[len(prefix):]

        if self.directory_only and not is_dir:
            return False
        return bool(self._regex.search(path))

    def __repr__(self) -> str:
        return f"IgnorePattern({'!' if self.negation else ''}{self.original!r}, base={self.base!r})"


class IgnoreMatcher:
    """Matches paths against a set of ignore patterns."""

    def __init__(self):
        self.patterns: List[IgnorePattern] = []
        self._cache: Dict[Tuple[str, bool], bool] = {}

    def add_pattern(self, pattern: str, base: str = '') -> None:
        """
        Add a pattern to the matcher.

        Args:
            pattern: A gitignore-style pattern
            base: Directory the pattern is relative to
        """
        pattern = pattern.rstrip('\n').rstrip()
        if not pattern or pattern.startswith('#'):
            return

        negation = False
        if pattern.startswith('!'):
            negation = True
            pattern = pattern[1:]
        elif pattern.startswith('\\'):
            pattern = pattern[1:]

        directory_only = False
        if pattern.endswith('/'):
            directory_only = True
            pattern = pattern[:-1]
        if not pattern:
            return

        self.patterns.append(IgnorePattern(pattern, negation, directory_only, base))
        self._cache.clear()

    def add_patterns(self, patterns: List[str], base: str = '') -> None:
        for pattern in patterns:
            self.add_pattern(pattern, base)

    def load_file(self, path: Path, base: str = '') -> bool:
        """
        Load patterns from an ignore file.

        A missing or unreadable file leaves the matcher unchanged.

        Returns:
            True if file was loaded successfully
        """
        if not path.is_file():
            return False
        try:
            content = path.read_text(errors='surrogateescape')
        except OSError as e:
            logger.warning("Could not read ignore file %s: %s", path, e)
            return False
        for line in content.splitlines():
            self.add_pattern(line, base)
        return True

    def is_ignored(self, path: str, is_dir: bool = False) -> bool:
        """
        Check if a path should be ignored.

        The last matching pattern wins. Negation patterns can
        un-ignore previously ignored files.

        Args:
            path: The path to check (relative to repo root)
            is_dir: Whether the path is a directory
        """
        cache_key = (path, is_dir)
        if cache_key in self._cache:
            return self._cache[cache_key]

        ignored = False
        for pattern in self.patterns:
            if pattern.matches(path, is_dir):
                ignored = not pattern.negation

        self._cache[cache_key] = ignored
        return ignored

    def filter_paths(self, paths: List[str], is_dir_func=None) -> List[str]:
        """Filter a list of paths, removing ignored ones."""
        result = []
        for path in paths:
            is_dir = is_dir_func(path) if is_dir_func else False
            if not self.is_ignored(path, is_dir):
                result.append(path)
        return result


def get_ignore_matcher(repo_root: Path) -> IgnoreMatcher:
    """
    Create an IgnoreMatcher with the repository-wide patterns.

    Loads patterns from:
    1. Built-in defaults (.git directory)
    2. .git/info/exclude
    3. .gitignore in the repo root

    Nested .gitignore files are added while walking with
    ``load_directory``.
    """
    matcher = IgnoreMatcher()
    matcher.add_pattern('.git/')
    matcher.add_pattern('.git')
    matcher.load_file(repo_root / '.git' / 'info' / 'exclude')
    matcher.load_file(repo_root / GITIGNORE)
    return matcher


def load_directory(matcher: IgnoreMatcher, repo_root: Path, rel_dir: str) -> None:
    """Add the patterns of ``<rel_dir>/.gitignore`` when walking into a subdirectory."""
    if rel_dir:
        matcher.load_file(repo_root / rel_dir / GITIGNORE, base=rel_dir)
