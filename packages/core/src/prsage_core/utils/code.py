from __future__ import annotations

BINARY_EXTENSIONS = {
    # images
    "jpg",
    "jpeg",
    "png",
    "gif",
    "svg",
    "ico",
    "webp",
    "bmp",
    # documents and archives
    "pdf",
    "zip",
    "tar",
    "gz",
    "rar",
    "7z",
    # audio / video
    "mp3",
    "mp4",
    "wav",
    "ogg",
    "avi",
    "mov",
    # executables and shared libraries
    "exe",
    "dll",
    "so",
    "dylib",
    # fonts
    "woff",
    "woff2",
    "ttf",
    "eot",
    "otf",
}

LANGUAGES = {
    "js": "JavaScript",
    "jsx": "React JSX",
    "ts": "TypeScript",
    "tsx": "React TSX",
    "vue": "Vue.js",
    "py": "Python",
    "java": "Java",
    "go": "Go",
    "rb": "Ruby",
    "php": "PHP",
    "cs": "C#",
    "cpp": "C++",
    "c": "C",
    "rs": "Rust",
    "kt": "Kotlin",
    "swift": "Swift",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "less": "Less",
    "sql": "SQL",
    "sh": "Shell",
    "yaml": "YAML",
    "yml": "YAML",
    "json": "JSON",
    "md": "Markdown",
}

_FRONTEND_LANGUAGE_HINTS = ("javascript", "typescript", "jsx", "tsx", "vue", "html", "css", "scss", "less")


def extension(path: str) -> str:
    """Lower-cased extension without the dot, or "" for extensionless files."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def is_binary_file(path: str) -> bool:
    return extension(path) in BINARY_EXTENSIONS


def detect_language(path: str) -> str | None:
    return LANGUAGES.get(extension(path))


def is_frontend_language(language: str | None) -> bool:
    if not language:
        return False
    lowered = language.lower()
    return any(hint in lowered for hint in _FRONTEND_LANGUAGE_HINTS)
