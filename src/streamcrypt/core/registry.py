"""Algorithm registry.

Each family module (``streamcrypt.security.hashing``, ``checksum``,
``symmetric``, ``rsa``) registers the algorithms it provides when it is
imported (``streamcrypt.security`` imports all of them). The one-byte ids
recorded here are the ids used in serialized result envelopes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .exceptions import UnsupportedAlgorithmError


class Family(enum.IntEnum):
    # value doubles as the envelope tag byte
    HASH = 1
    CIPHER = 2
    CHECKSUM = 3
    SIGNATURE = 4


@dataclass(frozen=True)
class AlgorithmInfo:
    name: str
    algorithm_id: int
    family: Family
    digest_size: Optional[int] = None
    block_size: Optional[int] = None
    key_size: Optional[int] = None
    iv_size: Optional[int] = None
    tag_size: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0 < self.algorithm_id < 256:
            raise ValueError("algorithm_id must fit in one byte and be non-zero")


_by_name: Dict[str, AlgorithmInfo] = {}
_by_id: Dict[int, AlgorithmInfo] = {}


def register_algorithm(info: AlgorithmInfo) -> AlgorithmInfo:
    """Add ``info`` to the registry.

    Re-registering an identical record is a no-op so modules can be
    reloaded; a different record under an existing name or id raises
    ``ValueError``.
    """
    existing = _by_name.get(info.name)
    if existing == info:
        return existing
    if existing is not None:
        raise ValueError(f"algorithm name already registered: {info.name}")
    if info.algorithm_id in _by_id:
        raise ValueError(
            f"algorithm id 0x{info.algorithm_id:02x} already used by {_by_id[info.algorithm_id].name}"
        )
    _by_name[info.name] = info
    _by_id[info.algorithm_id] = info
    return info


def unregister_algorithm(name: str) -> None:
    info = _by_name.pop(name, None)
    if info is not None:
        _by_id.pop(info.algorithm_id, None)


def get_algorithm(key: Union[str, int, AlgorithmInfo], family: Optional[Family] = None) -> AlgorithmInfo:
    """Look up an algorithm by name, id, or pass an ``AlgorithmInfo`` through.

    When ``family`` is given the algorithm must belong to it.
    """
    if isinstance(key, AlgorithmInfo):
        info = key
    elif isinstance(key, int):
        info = _by_id.get(key)
    else:
        info = _by_name.get(str(key).lower())

    if info is None:
        raise UnsupportedAlgorithmError(f"unknown algorithm: {key!r}")
    if family is not None and info.family is not family:
        raise UnsupportedAlgorithmError(
            f"{info.name} is a {info.family.name.lower()} algorithm, expected {family.name.lower()}"
        )
    return info


def available_algorithms(family: Optional[Family] = None) -> List[AlgorithmInfo]:
    return sorted(
        (info for info in _by_name.values() if family is None or info.family is family),
        key=lambda info: info.algorithm_id,
    )
