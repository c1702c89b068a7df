"""Place generated code into the virtual project directory scheme.

Classification is an ordered rule list: the first rule whose keywords appear
in the (lowercased) body wins. Keep the tables ordered; the tests pin the
precedence down rule by rule.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import PurePosixPath

KIND_CONTRACT = "contract"
KIND_SCRIPT = "script"
KIND_CONFIG = "config"
KIND_DOC = "doc"
KIND_OTHER = "other"

KINDS = (KIND_CONTRACT, KIND_SCRIPT, KIND_CONFIG, KIND_DOC, KIND_OTHER)

_LANGUAGE_KINDS: dict[str, tuple[str, str]] = {
    "move": (KIND_CONTRACT, ".move"),
    "js": (KIND_SCRIPT, ".js"),
    "javascript": (KIND_SCRIPT, ".js"),
    "node": (KIND_SCRIPT, ".js"),
    "ts": (KIND_SCRIPT, ".ts"),
    "typescript": (KIND_SCRIPT, ".ts"),
    "json": (KIND_CONFIG, ".json"),
    "toml": (KIND_CONFIG, ".toml"),
    "md": (KIND_DOC, ".md"),
    "markdown": (KIND_DOC, ".md"),
    "python": (KIND_OTHER, ".py"),
    "py": (KIND_OTHER, ".py"),
    "bash": (KIND_OTHER, ".sh"),
    "sh": (KIND_OTHER, ".sh"),
    "shell": (KIND_OTHER, ".sh"),
    "yaml": (KIND_OTHER, ".yaml"),
    "yml": (KIND_OTHER, ".yaml"),
    "sql": (KIND_OTHER, ".sql"),
    "text": (KIND_OTHER, ".txt"),
    "txt": (KIND_OTHER, ".txt"),
}

_EXTENSION_KINDS: dict[str, str] = {
    ".move": KIND_CONTRACT,
    ".js": KIND_SCRIPT,
    ".ts": KIND_SCRIPT,
    ".json": KIND_CONFIG,
    ".toml": KIND_CONFIG,
    ".md": KIND_DOC,
}

_DEFAULT_EXTENSIONS = {
    KIND_CONTRACT: ".move",
    KIND_SCRIPT: ".js",
    KIND_CONFIG: ".json",
    KIND_DOC: ".md",
    KIND_OTHER: ".txt",
}


@dataclass(frozen=True)
class Rule:
    name: str
    keywords: tuple[str, ...]
    directory: str
    stem: str


# Ordered: core, tokens, defi, governance, nft, access, utils.
CONTRACT_RULES: tuple[Rule, ...] = (
    Rule("core", ("core protocol", "protocol_core", "core_protocol", "protocol_config", "::core"), "contracts/core", "Protocol"),
    Rule("token_nft", ("non_fungible", "non-fungible", "nonfungible"), "contracts/tokens/nft", "NFTToken"),
    Rule(
        "token_fungible",
        ("fungible", "struct token", "struct coin", "coininfo", "coin_info", "mintcapability", "mint_capability", "burncapability"),
        "contracts/tokens/fungible",
        "FungibleToken",
    ),
    Rule("defi_liquidity", ("liquidity", "liquiditypool", "amm"), "contracts/defi/liquidity", "LiquidityPool"),
    Rule("defi_swap", ("swap", "exchange_rate"), "contracts/defi/swap", "Swap"),
    Rule("defi_lending", ("lending", "borrow", "collateral", "repay"), "contracts/defi/lending", "Lending"),
    Rule("defi_staking", ("staking", "stake", "reward_rate"), "contracts/defi/staking", "Staking"),
    Rule("governance", ("governance", "dao", "proposal", "voting", "vote"), "contracts/governance", "Governance"),
    Rule("nft_marketplace", ("marketplace", "listing", "auction"), "contracts/nft/marketplace", "Marketplace"),
    Rule("nft_collection", ("nft", "collection"), "contracts/nft/collection", "Collection"),
    Rule(
        "access",
        ("access_control", "access control", "multisig", "multi_sig", "whitelist", "allowlist", "only_admin", "is_admin", "permission"),
        "contracts/access",
        "AccessControl",
    ),
    Rule("utils", ("utils", "util", "helper", "math"), "contracts/utils", "Utils"),
)

CONTRACT_DEFAULT = Rule("default", (), "contracts/core", "Contract")

_NETWORKS = ("mainnet", "testnet", "devnet", "localnet")
_DEPLOY_KEYWORDS = ("deploy", "deployment", "publish")
_INTERACTION_KEYWORDS = ("interact", "interaction", "call", "invoke", "query", "view")
_README_HEADINGS = ("## setup", "## installation", "## usage", "## getting started", "## features", "## project structure")
_MODULE_PATTERN = re.compile(r"\bmodule\s+(?:[\w]+::)?([A-Za-z_]\w*)")


def resolve_kind(declared_kind: str | None, proposed_name: str | None = None) -> tuple[str, str]:
    """Return ``(kind, extension)`` for a language tag, kind name or file name."""

    suffix = PurePosixPath(proposed_name).suffix.lower() if proposed_name else ""
    if suffix in _EXTENSION_KINDS:
        return _EXTENSION_KINDS[suffix], suffix

    tag = (declared_kind or "").strip().lower().lstrip(".")
    if tag in _LANGUAGE_KINDS:
        kind, extension = _LANGUAGE_KINDS[tag]
        return kind, suffix or extension
    if tag in KINDS:
        return tag, suffix or _DEFAULT_EXTENSIONS[tag]
    return KIND_OTHER, suffix or _DEFAULT_EXTENSIONS[KIND_OTHER]


def contains_keyword(lowered: str, keywords: tuple[str, ...]) -> bool:
    """Match keywords that start at a word boundary (``amm`` but not ``programming``)."""

    for keyword in keywords:
        if re.search(rf"(?<![a-z0-9]){re.escape(keyword)}", lowered):
            return True
    return False


def match_contract_rule(body: str) -> Rule:
    lowered = body.lower()
    for rule in CONTRACT_RULES:
        if contains_keyword(lowered, rule.keywords):
            return rule
    return CONTRACT_DEFAULT


def is_package_json(body: str) -> bool:
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    if not isinstance(payload, dict) or "name" not in payload:
        return False
    return any(key in payload for key in ("dependencies", "devDependencies", "scripts", "version"))


def is_readme(body: str, proposed_name: str | None = None) -> bool:
    if proposed_name and PurePosixPath(proposed_name).stem.lower() == "readme":
        return True
    lowered = body.lower()
    if not body.lstrip().startswith("# "):
        return False
    return sum(1 for heading in _README_HEADINGS if heading in lowered) >= 2


def _script_directory(body: str) -> tuple[str, str]:
    lowered = body.lower()
    if contains_keyword(lowered, _DEPLOY_KEYWORDS):
        network = next((name for name in _NETWORKS if name in lowered), "devnet")
        return f"scripts/deployment/{network}", "deploy"
    if contains_keyword(lowered, _INTERACTION_KEYWORDS):
        return "scripts/interaction", "interact"
    return "scripts", "script"


def suggest_file_name(body: str, declared_kind: str | None) -> str:
    """Derive a basename for a block the model did not name."""

    kind, extension = resolve_kind(declared_kind)
    if kind == KIND_CONTRACT:
        matched = _MODULE_PATTERN.search(body)
        if matched:
            return f"{matched.group(1)}{extension}"
        return f"{match_contract_rule(body).stem}{extension}"
    if kind == KIND_SCRIPT:
        return f"{_script_directory(body)[1]}{extension}"
    if kind == KIND_CONFIG:
        if extension == ".toml":
            return "Move.toml" if "[package]" in body else "config.toml"
        return "package.json" if is_package_json(body) else "config.json"
    if kind == KIND_DOC:
        return "README.md" if is_readme(body) else "Documentation.md"
    return f"snippet{extension}"


def classify(proposed_name: str | None, body: str, declared_kind: str | None) -> str:
    """Return the canonical virtual path for one validated code body."""

    name = (proposed_name or "").strip().strip("/")
    if name and len([part for part in name.split("/") if part]) >= 2:
        return name

    kind, _ = resolve_kind(declared_kind, name or None)
    basename = name or suggest_file_name(body, declared_kind)

    if kind == KIND_CONTRACT:
        return f"{match_contract_rule(body).directory}/{basename}"
    if kind == KIND_SCRIPT:
        return f"{_script_directory(body)[0]}/{basename}"
    if kind == KIND_CONFIG:
        if basename.lower() == "package.json" or (basename.lower().endswith(".json") and is_package_json(body)):
            return "package.json"
        return f"config/{basename}"
    if kind == KIND_DOC:
        if is_readme(body, basename):
            return "README.md" if basename.lower() == "readme.md" else basename
        return f"docs/{basename}"
    return f"misc/{basename}"
