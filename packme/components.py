import logging
from dataclasses import dataclass

from packme.errors import ComponentReadError

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Component:
    name: str
    path: str
    data: bytes

    @property
    def size(self):
        return len(self.data)


def load_component(name, path):
    if path is None or path == "":
        return None
    try:
        with open(path, "rb") as f:
            data = f.read()
    except FileNotFoundError:
        _log.warning("%s not found at %s, treating it as absent", name, path)
        return None
    except OSError as e:
        raise ComponentReadError(name, path, e.strerror or e) from e
    _log.debug("loaded %s from %s (%d bytes)", name, path, len(data))
    return Component(name, str(path), data)


def component_size(component):
    if component is None:
        return 0
    return component.size


def component_data(component):
    if component is None:
        return b""
    return component.data
