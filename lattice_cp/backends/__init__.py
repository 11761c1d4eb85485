"""
Backend registry.

Priority order for auto-selection: Threads (multi-core) > serial CPU
"""
from multiprocessing import cpu_count

from .base import GroupBackend
from .cpu import CPUBackend, ThreadBackend


def list_backends():
    """List all backends with their status."""
    backends = []
    for label, backend in (
        ('serial', CPUBackend(n_workers=1)),
        ('cpu', CPUBackend()),
        ('thread', ThreadBackend()),
    ):
        backends.append((label, backend.get_name(), backend.is_available()))
    return backends


def auto_select_backend() -> GroupBackend:
    """Auto-select a backend.

    Threads when more than one core is present, otherwise serial.
    """
    n_cores = cpu_count() or 1
    if n_cores > 1:
        return ThreadBackend(n_workers=n_cores)
    return CPUBackend(n_workers=1)


def get_backend(name: str, n_workers=None) -> GroupBackend:
    """Get a specific backend by name.

    Args:
        name: 'serial', 'cpu', 'thread' or 'auto'
        n_workers: worker count for 'cpu' and 'thread' (None -> all cores)

    Returns:
        GroupBackend instance

    Raises:
        ValueError if the name is unknown
    """
    name = name.lower()

    if name == 'serial':
        return CPUBackend(n_workers=1)
    elif name == 'cpu':
        return CPUBackend(n_workers=n_workers)
    elif name == 'thread':
        return ThreadBackend(n_workers=n_workers)
    elif name == 'auto':
        return auto_select_backend()
    else:
        raise ValueError(f"Unknown backend: {name}. Choose from: serial, cpu, thread, auto")
