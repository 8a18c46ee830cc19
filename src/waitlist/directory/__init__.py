"""Directory registry — customer history and business/service naming."""

_directory = None


def get_directory():
    global _directory
    if _directory is None:
        from waitlist.directory.fake import FakeDirectory

        _directory = FakeDirectory()
    return _directory


def set_directory(directory) -> None:
    global _directory
    _directory = directory


def reset_directory():
    global _directory
    _directory = None
