"""Card database containing all card definitions."""

import random

# Card structure: [Type, Rarity, Effect, Attack, Health, Cost, Name, Keywords, Description]
# Index:           0     1       2       3       4       5     6     7         8

CARDS_DATA = {
    "basic_warrior": [
        "creature", "common", "", 2, 3, 2, "Novice Warrior", [],
        "A brave young warrior ready for battle"
    ],
    "basic_mage": [
        "creature", "common", "", 1, 4, 2, "Apprentice Mage", ["Spellpower"],
        "A student of the magical arts"
    ],
    "basic_archer": [
        "creature", "common", "", 3, 2, 3, "Forest Archer", ["Range"],
        "Swift and accurate with a bow"
    ],
    "basic_spell": [
        "spell", "common", "damage", 3, 0, 1, "Lightning Bolt", [],
        "Deal 3 damage to any target"
    ],
    "basic_heal": [
        "spell", "common", "heal", 5, 0, 1, "Healing Potion", [],
        "Restore 5 health to any target"
    ],
    "knight_defender": [
        "creature", "rare", "", 3, 6, 4, "Royal Knight", ["Taunt", "Armor"],
        "A noble defender of the realm"
    ],
    "fire_mage": [
        "creature", "rare", "", 2, 3, 3, "Flame Conjurer", ["Spellpower", "Burning"],
        "Master of fire magic"
    ],
    "shadow_assassin": [
        "creature", "rare", "", 4, 2, 3, "Shadow Stalker", ["Stealth", "Poison"],
        "Strikes from the darkness"
    ],
    "fireball": [
        "spell", "rare", "area_damage", 6, 0, 4, "Fireball", [],
        "Deal 6 damage to target and 2 to adjacent enemies"
    ],
    "dragon_knight": [
        "creature", "epic", "", 5, 7, 6, "Dragonscale Champion", ["Flying", "Dragonborn"],
        "A legendary warrior bonded with dragons"
    ],
    "archmage": [
        "creature", "epic", "", 4, 6, 7, "Arcane Archmage", ["Spellpower", "Magical Immunity"],
        "Master of all magical schools"
    ],
    "demon_lord": [
        "creature", "epic", "", 7, 5, 8, "Infernal Lord", ["Fear", "Hellfire"],
        "A powerful demon from the depths"
    ],
    "phoenix_eternal": [
        "creature", "legendary", "", 6, 8, 9, "Eternal Phoenix", ["Flying", "Rebirth", "Legendary"],
        "Reborn from its own ashes when destroyed"
    ],
    "time_wizard": [
        "creature", "legendary", "time_manipulation", 3, 9, 10, "Chronos Mage",
        ["Time Magic", "Legendary"],
        "Controller of time itself"
    ],
    "world_tree": [
        "creature", "legendary", "", 0, 12, 8, "Yggdrasil Seedling",
        ["Growth", "Nature Magic", "Legendary"],
        "The world tree in its youth"
    ],
    "battle_banner": [
        "support", "common", "", 0, 0, 2, "Battle Banner", [],
        "Raise the colors of your warband"
    ],
}

# Card info indices
IDX_TYPE = 0
IDX_RARITY = 1
IDX_EFFECT = 2
IDX_ATTACK = 3
IDX_HEALTH = 4
IDX_COST = 5
IDX_NAME = 6
IDX_KEYWORDS = 7
IDX_DESCRIPTION = 8

CARD_TYPES = ("creature", "spell", "support")

# First ten catalog cards, used when a player has no active deck
DEFAULT_DECK = list(CARDS_DATA.keys())[:10]


def get_card_info(card_id: str) -> list | None:
    """Get card info by card ID."""
    return CARDS_DATA.get(card_id)


def get_card_cost(card_id: str) -> int:
    """Get card cost by card ID."""
    info = CARDS_DATA.get(card_id)
    if info:
        return info[IDX_COST]
    return 0


def get_all_card_ids() -> list:
    """Get all available card IDs."""
    return list(CARDS_DATA.keys())


def generate_random_deck(size: int = 10, rng: random.Random | None = None) -> list:
    """Pick `size` distinct random cards from the catalog (used for AI opponents)."""
    rng = rng or random.Random()
    card_ids = get_all_card_ids()
    return rng.sample(card_ids, min(size, len(card_ids)))
