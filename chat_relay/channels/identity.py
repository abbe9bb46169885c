"""Sender name canonicalisation.

The host renders sender names with decorative private-use glyphs (party
numbers, cross-world icons) and glues the home world of cross-world players
directly onto the surname ("Jane DoeGilgamesh"). Everything downstream keys
on ``Name@World``.
"""

import re
from typing import Iterable, Optional

_PRIVATE_USE = re.compile("[\ue000-\uf8ff]")
_WHITESPACE = re.compile(r"\s+")

DEFAULT_WORLDS = frozenset(
    {
        # Aether
        "Adamantoise", "Cactuar", "Faerie", "Gilgamesh", "Jenova", "Midgardsormr",
        "Sargatanas", "Siren",
        # Crystal
        "Balmung", "Brynhildr", "Coeurl", "Diabolos", "Goblin", "Malboro", "Mateus",
        "Zalera",
        # Dynamis
        "Cuchulainn", "Golem", "Halicarnassus", "Kraken", "Maduin", "Marilith",
        "Rafflesia", "Seraph",
        # Primal
        "Behemoth", "Excalibur", "Exodus", "Famfrit", "Hyperion", "Lamia", "Leviathan",
        "Ultros",
        # Chaos
        "Cerberus", "Louisoix", "Moogle", "Omega", "Phantom", "Ragnarok", "Sagittarius",
        "Spriggan",
        # Light
        "Alpha", "Lich", "Odin", "Phoenix", "Raiden", "Shiva", "Twintania", "Zodiark",
        # Materia
        "Bismarck", "Ravana", "Sephirot", "Sophia", "Zurvan",
        # Meteor / Elemental / Gaia / Mana (JP)
        "Aegis", "Atomos", "Carbuncle", "Garuda", "Gungnir", "Kujata", "Tonberry",
        "Typhon", "Alexander", "Bahamut", "Durandal", "Fenrir", "Ifrit", "Ridill",
        "Tiamat", "Ultima", "Anima", "Asura", "Chocobo", "Hades", "Ixion", "Masamune",
        "Pandaemonium", "Titan", "Belias", "Mandragora", "Ramuh", "Shinryu", "Unicorn",
        "Valefor", "Yojimbo", "Zeromus",
    }
)


def clean_display_name(sender: str) -> str:
    """Strip private-use glyphs and collapse whitespace."""
    cleaned = _PRIVATE_USE.sub("", sender or "")
    return _WHITESPACE.sub(" ", cleaned).strip()


def split_glued_world(name: str, worlds: Iterable[str]) -> tuple[str, Optional[str]]:
    """Split ``"First LastWorld"`` into ``("First Last", "World")``.

    Only splits when the remainder still looks like a two-part character name
    and the world starts a new capitalised run glued to a lowercase letter.
    """
    for world in sorted(worlds, key=len, reverse=True):
        if not name.endswith(world) or len(name) == len(world):
            continue
        prefix = name[: -len(world)]
        if " " in prefix and prefix[-1].islower() and world[:1].isupper():
            return prefix, world
    return name, None


def normalize_sender(
    sender: str,
    *,
    context_world: Optional[str] = None,
    local_name: str = "",
    local_world: str = "",
    known_worlds: Iterable[str] = (),
) -> str:
    """Canonicalise a sender string to ``Name@World``.

    Args:
        sender: Sender as delivered by the host.
        context_world: World reported alongside the event, if any.
        local_name: Local player's character name.
        local_world: Local player's home world.
        known_worlds: Extra world names beyond the built-in list.

    Returns:
        ``Name@World``, or the bare name when no world can be inferred.
    """
    name = clean_display_name(sender)
    if not name:
        return ""

    if "@" in name:
        bare, _, world = name.rpartition("@")
        bare, world = bare.strip(), world.strip()
        if bare and world:
            return f"{bare}@{world}"
        name = bare or world

    worlds = set(DEFAULT_WORLDS)
    worlds.update(w for w in known_worlds if w)
    name, world = split_glued_world(name, worlds)

    if world is None:
        world = (context_world or "").strip() or None
    if world is None and local_world:
        # Players on the local world are shown without a world tag
        world = local_world.strip()

    if local_name and name.casefold() == local_name.strip().casefold():
        name = local_name.strip()

    return f"{name}@{world}" if world else name
