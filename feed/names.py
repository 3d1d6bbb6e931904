"""Human-readable display names for account identities.

Names are a pure function of the public key, so every client shows the
same name for the same author without any lookup.
"""

from feed.keys import PublicKey

ADJECTIVES = (
    "Amber", "Brave", "Calm", "Dusky", "Eager", "Fuzzy", "Gentle", "Hasty",
    "Icy", "Jolly", "Keen", "Lucky", "Mellow", "Nimble", "Odd", "Plucky",
    "Quiet", "Rusty", "Sunny", "Tidy", "Upbeat", "Vivid", "Witty", "Young",
    "Zesty", "Bold", "Crisp", "Dapper", "Feisty", "Giddy", "Humble", "Jumpy",
)

ANIMALS = (
    "Badger", "Cobra", "Dingo", "Eagle", "Ferret", "Gecko", "Heron", "Ibis",
    "Jackal", "Koala", "Lemur", "Marmot", "Newt", "Otter", "Panda", "Quail",
    "Raven", "Stoat", "Tapir", "Urchin", "Vole", "Walrus", "Yak", "Zebra",
    "Alpaca", "Bison", "Crane", "Dolphin", "Finch", "Gopher", "Hyena", "Lynx",
)


def public_key_to_name(pubkey: PublicKey) -> str:
    """Map a public key to a stable ``Adjective Animal #nnnn`` name."""
    key = pubkey.to_bytes()
    adjective = ADJECTIVES[key[0] % len(ADJECTIVES)]
    animal = ANIMALS[key[1] % len(ANIMALS)]
    suffix = int.from_bytes(key[2:4], "big") % 10000
    return f"{adjective} {animal} #{suffix:04d}"


def fallback_name(pubkey: PublicKey) -> str:
    """Shortened identity shown when no display name can be produced."""
    text = str(pubkey)
    return f"{text[:4]}...{text[-4:]}"
