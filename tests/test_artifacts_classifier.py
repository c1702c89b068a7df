from __future__ import annotations

import unittest

from imcode.artifacts.classifier import classify, match_contract_rule, resolve_kind, suggest_file_name


class ContractClassificationTests(unittest.TestCase):
    def test_pre_organized_path_is_returned_unchanged(self) -> None:
        body = "module a::Token { struct Token has key { value: u64 } } // fungible"
        self.assertEqual(classify("contracts/custom/Thing.move", body, "move"), "contracts/custom/Thing.move")

    def test_fungible_token_uses_module_name(self) -> None:
        body = "module example::Coin {\n    struct Token has key { value: u64 }\n    // fungible\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/tokens/fungible/Coin.move")

    def test_fungible_token_without_module_uses_rule_stem(self) -> None:
        body = "struct Token has key { supply: u64 }\n// fungible supply tracking\n"
        self.assertEqual(suggest_file_name(body, "move"), "FungibleToken.move")
        self.assertEqual(classify(None, body, "move"), "contracts/tokens/fungible/FungibleToken.move")

    def test_non_fungible_wins_over_fungible(self) -> None:
        body = "module a::Art {\n    // non_fungible art piece\n    struct Token has key {}\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/tokens/nft/Art.move")

    def test_core_wins_over_token(self) -> None:
        body = "module a::core_token {\n    struct Token has key {}\n    // fungible\n}\n"
        self.assertEqual(match_contract_rule(body).name, "core")
        self.assertEqual(classify(None, body, "move"), "contracts/core/core_token.move")

    def test_liquidity_wins_over_swap(self) -> None:
        body = "module a::Pool {\n    public fun add_liquidity() {}\n    public fun swap() {}\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/defi/liquidity/Pool.move")

    def test_swap(self) -> None:
        body = "module a::Dex {\n    public fun swap(x: u64) {}\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/defi/swap/Dex.move")

    def test_governance(self) -> None:
        body = "module a::Gov {\n    struct Proposal has key { id: u64 }\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/governance/Gov.move")

    def test_marketplace(self) -> None:
        body = "module a::Market {\n    struct Listing has store { price: u64 }\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/nft/marketplace/Market.move")

    def test_lending(self) -> None:
        body = "module a::Vault {\n    public fun borrow(amount: u64) {}\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/defi/lending/Vault.move")

    def test_staking(self) -> None:
        body = "module a::Farm {\n    public fun stake(amount: u64) {}\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/defi/staking/Farm.move")

    def test_collection(self) -> None:
        body = "module a::Gallery {\n    struct Collection has key { size: u64 }\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/nft/collection/Gallery.move")
        self.assertEqual(suggest_file_name("struct Collection has key { size: u64 }", "move"), "Collection.move")

    def test_adjacent_rules_keep_their_order(self) -> None:
        cases = [
            ("module a::Lp {\n    struct Coin has store {}\n    fun add_liquidity() {}\n}\n", "token_fungible"),
            ("module a::Desk {\n    public fun swap_then_repay() {}\n}\n", "defi_swap"),
            ("module a::Bank {\n    public fun borrow_against_stake() {}\n}\n", "defi_lending"),
            ("module a::Delegation {\n    public fun stake_and_vote() {}\n}\n", "defi_staking"),
            ("module a::Club {\n    public fun vote(nft_id: u64) {}\n}\n", "governance"),
            ("module a::Shop {\n    struct Listing has store { collection: u64 }\n}\n", "nft_marketplace"),
            ("module a::Drop {\n    struct Collection has key {}\n    fun whitelist() {}\n}\n", "nft_collection"),
            (
                "module a::Guard {\n    public fun whitelist_add(addr: address) {}\n    fun math_min(a: u64): u64 { a }\n}\n",
                "access",
            ),
        ]
        for body, expected in cases:
            with self.subTest(expected=expected):
                self.assertEqual(match_contract_rule(body).name, expected)

    def test_access_control(self) -> None:
        body = "module a::Roles {\n    public fun only_admin(account: &signer) {}\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/access/Roles.move")

    def test_utils(self) -> None:
        body = "module a::Helpers {\n    public fun max(a: u64, b: u64): u64 { a }\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/utils/Helpers.move")

    def test_unmatched_contract_goes_to_core(self) -> None:
        body = "module a::Counter {\n    struct Counter has key { value: u64 }\n}\n"
        self.assertEqual(classify(None, body, "move"), "contracts/core/Counter.move")

    def test_keywords_match_at_word_start_only(self) -> None:
        body = "module a::Programming {\n    fun run() {}\n}\n"
        self.assertEqual(match_contract_rule(body).name, "default")

    def test_bare_name_is_placed_by_content(self) -> None:
        body = "module a::Dex {\n    public fun swap(x: u64) {}\n}\n"
        self.assertEqual(classify("Dex.move", body, "move"), "contracts/defi/swap/Dex.move")


class OtherKindClassificationTests(unittest.TestCase):
    def test_deployment_script_goes_under_network(self) -> None:
        body = "async function main() {\n  await deployer.deploy();\n}\n// target: testnet\n"
        self.assertEqual(classify(None, body, "js"), "scripts/deployment/testnet/deploy.js")

    def test_deployment_network_defaults_to_devnet(self) -> None:
        body = "async function main() {\n  await publish(packagePath);\n}\n"
        self.assertEqual(classify(None, body, "ts"), "scripts/deployment/devnet/deploy.ts")

    def test_interaction_script(self) -> None:
        body = "const result = await client.view({ function: 'get_count' });\n"
        self.assertEqual(classify(None, body, "javascript"), "scripts/interaction/interact.js")

    def test_plain_script(self) -> None:
        body = "export const sum = (a: number, b: number) => a + b;\n"
        self.assertEqual(classify(None, body, "ts"), "scripts/script.ts")

    def test_package_json_goes_to_root(self) -> None:
        body = '{"name": "umi-dapp", "version": "1.0.0", "dependencies": {}}'
        self.assertEqual(classify(None, body, "json"), "package.json")

    def test_other_json_goes_to_config(self) -> None:
        body = '{"network": "devnet", "rpc": "https://devnet.example.com"}'
        self.assertEqual(classify(None, body, "json"), "config/config.json")

    def test_move_toml(self) -> None:
        body = '[package]\nname = "MyContract"\nversion = "1.0.0"\n'
        self.assertEqual(classify(None, body, "toml"), "config/Move.toml")

    def test_readme_goes_to_root(self) -> None:
        body = "# My Project\n\n## Setup\nnpm install\n\n## Usage\nnpm start\n"
        self.assertEqual(classify(None, body, "markdown"), "README.md")

    def test_other_docs_go_to_docs(self) -> None:
        body = "# Security notes\nAlways check the signer.\n"
        self.assertEqual(classify(None, body, "md"), "docs/Documentation.md")

    def test_unknown_language_goes_to_misc(self) -> None:
        self.assertEqual(classify(None, "print('hello world from python')\n", "python"), "misc/snippet.py")
        self.assertEqual(classify("notes.txt", "some free form notes here\n", "text"), "misc/notes.txt")


class ResolveKindTests(unittest.TestCase):
    def test_language_tags(self) -> None:
        self.assertEqual(resolve_kind("typescript"), ("script", ".ts"))
        self.assertEqual(resolve_kind("move"), ("contract", ".move"))
        self.assertEqual(resolve_kind("weird"), ("other", ".txt"))

    def test_extension_wins_over_declared_kind(self) -> None:
        self.assertEqual(resolve_kind("contract", "Token.move"), ("contract", ".move"))
        self.assertEqual(resolve_kind("text", "deploy.js"), ("script", ".js"))


if __name__ == "__main__":
    unittest.main()
