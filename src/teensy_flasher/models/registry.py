"""
MCU registry for Teensy bootloader targets.

Provides a single source of truth for:
- Flash capacity (code size) of each supported microcontroller
- Bootloader write block size
- Marketing aliases (TEENSY2, TEENSYLC, ...) mapped to canonical MCU names

Usage:
    from teensy_flasher.models import resolve, list_names

    # All names accepted on the command line
    names = list_names()

    # Look up a target by canonical name or alias
    mcu = resolve("TEENSYLC")
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class McuDescriptor:
    """Flash layout of a bootloader target."""
    name: str
    code_size: int
    block_size: int

    @property
    def block_count(self) -> int:
        """Number of blocks covering the whole flash."""
        return self.code_size // self.block_size


# ============================================================================
# MCU REGISTRY - canonical names and aliases, in display order
# ============================================================================

# name, code size, block size
_MCUS: Tuple[Tuple[str, int, int], ...] = (
    ("at90usb162", 15872, 128),
    ("atmega32u4", 32256, 128),
    ("at90usb646", 64512, 256),
    ("at90usb1286", 130048, 256),
    ("mkl26z64", 63488, 512),
    ("mk20dx128", 131072, 1024),
    ("mk20dx256", 262144, 1024),
    ("mk64fx512", 524288, 1024),
    ("mk66fx1m0", 1048576, 1024),
)

# alias, canonical name
_ALIASES: Tuple[Tuple[str, str], ...] = (
    ("TEENSY2", "atmega32u4"),
    ("TEENSY2PP", "at90usb1286"),
    ("TEENSYLC", "mkl26z64"),
    ("TEENSY30", "mk20dx128"),
    ("TEENSY31", "mk20dx256"),
    ("TEENSY35", "mk64fx512"),
    ("TEENSY36", "mk66fx1m0"),
)

_MCU_REGISTRY: Dict[str, McuDescriptor] = {
    name: McuDescriptor(name=name, code_size=code_size, block_size=block_size)
    for name, code_size, block_size in _MCUS
}

_ALIAS_REGISTRY: Dict[str, str] = dict(_ALIASES)


# ============================================================================
# PUBLIC API
# ============================================================================

def resolve(name: str) -> Optional[McuDescriptor]:
    """
    Look up a target by canonical name or alias.

    Args:
        name: MCU name or alias (case-sensitive, exact match)

    Returns:
        McuDescriptor or None if not found.
    """
    canonical = _ALIAS_REGISTRY.get(name, name)
    return _MCU_REGISTRY.get(canonical)


def list_names() -> List[str]:
    """
    List every accepted target name.

    Returns:
        Canonical names followed by aliases, in table order.
    """
    return [name for name, _, _ in _MCUS] + [alias for alias, _ in _ALIASES]


def list_mcus() -> List[McuDescriptor]:
    """Return all canonical descriptors in table order."""
    return [_MCU_REGISTRY[name] for name, _, _ in _MCUS]


def aliases_for(canonical: str) -> List[str]:
    """Return the aliases that resolve to a canonical MCU name."""
    return [alias for alias, target in _ALIASES if target == canonical]
