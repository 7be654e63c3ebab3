import math
import struct

def normalize_address(addr: str) -> str:
    """
    Minimal normalization so cache keys & seeds are stable:
    - trim whitespace
    - lowercase
    - collapse multiple spaces
    """
    return " ".join(addr.strip().lower().split())

def fnv1a_32(s: str) -> int:
    """Deterministic, fast hash for seed generation."""
    h = 0x811c9dc5
    for c in s.encode("utf-8"):
        h ^= c
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h

def seeded_rand(seed: int, n: int = 1) -> list[float]:
    """
    Stateless pseudo-random generator (Mulberry32-like) so
    same seed → same outputs without storing PRNG state.
    """
    out = []
    t = (seed + 0x6D2B79F5) & 0xFFFFFFFF
    for _ in range(n):
        t = (t ^ (t >> 15)) * (t | 1) & 0xFFFFFFFF
        t ^= t + ((t ^ (t >> 7)) * (t | 61) & 0xFFFFFFFF)
        r = ((t ^ (t >> 14)) & 0xFFFFFFFF) / 4294967296.0
        out.append(r)
    return out

def address_fingerprint(address: str) -> int:
    """
    Stable, non-cryptographic fingerprint of an address string:
    sum of code_unit(i) * (i + 1) over the UTF-16 code units.

    Other consumers recompute this value independently, so the
    definition must not change.
    """
    raw = address.encode("utf-16-le")
    units = struct.unpack(f"<{len(raw) // 2}H", raw)
    return sum(unit * (idx + 1) for idx, unit in enumerate(units))

def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (towards +inf)."""
    return int(math.floor(value + 0.5))
