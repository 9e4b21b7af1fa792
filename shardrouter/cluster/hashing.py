"""
Key Hashing Module

Maps a shard key to a partition with 32-bit FNV-1a followed by a modulo.
The result depends only on the key bytes and the partition count, so every
process with the same topology routes a key to the same partition.
"""

from ..errors import ConfigurationError

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 16777619
_MASK32 = 0xFFFFFFFF


def fnv1a_32(data: bytes) -> int:
    """
    32-bit FNV-1a hash.

    Args:
        data: Bytes to hash

    Returns:
        Unsigned 32-bit hash value
    """
    h = FNV32_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV32_PRIME) & _MASK32
    return h


def partition_for_key(key: str, num_partitions: int) -> int:
    """
    Calculate which partition owns a given key.

    Args:
        key: The shard key (any string, including "")
        num_partitions: Number of partitions in the topology

    Returns:
        Partition ID in [0, num_partitions)
    """
    if num_partitions <= 0:
        raise ConfigurationError(f"num_partitions must be positive, got {num_partitions}")
    return fnv1a_32(key.encode("utf-8")) % num_partitions
