class PackmeError(RuntimeError):
    pass


class ValidationError(PackmeError):
    pass


class MissingDtbError(ValidationError):
    def __init__(self, header_version):
        super().__init__(
            f"DTB image must not be empty for boot header version {header_version}"
        )
        self.header_version = header_version


class ComponentReadError(PackmeError):
    def __init__(self, name, path, reason):
        super().__init__(f"Cannot read {name} from {path}: {reason}")
        self.name = name
        self.path = path


class ImageWriteError(PackmeError):
    def __init__(self, path, reason):
        super().__init__(f"Cannot write image {path}: {reason}")
        self.path = path
