"""Tests for ConsistencyChecker."""

import logging

import pytest

from capaudit.checker import ConsistencyChecker
from capaudit.errors import DerivationError
from capaudit.extractor import DocumentationExtractor
from capaudit.hierarchy import TypeHierarchyIndex
from capaudit.models import InheritanceFailure, MismatchFailure, ResolutionFailure, UndocumentedType
from capaudit.policy import AuditPolicy
from capaudit.registry import RequirementRegistry


def link(reference):
    return "{@link " + reference + "}"


def make_checker(taxonomies, types, derived=None, policy=None, workers=1):
    """Build a checker over a static type table.

    Args:
        types: {name: (parent, description)}
        derived: {taxonomy: {type_name: [members]}}; absent types derive nothing
    """
    index = TypeHierarchyIndex.from_mapping(
        {name: parent for name, (parent, _) in types.items()},
        descriptions={name: description for name, (_, description) in types.items()},
    )

    def deriver(table):
        return lambda subject: table.get(subject.name, [])

    registry = RequirementRegistry(
        taxonomies,
        {taxonomy: deriver(table) for taxonomy, table in (derived or {}).items()},
    )
    return ConsistencyChecker(
        index, DocumentationExtractor(), registry, policy=policy, workers=workers
    )


class TestScenarios:
    """End-to-end checker scenarios over small hierarchies."""

    def test_documented_equals_derived_passes(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {"A": (None, link("CacheFlag#MEMBER_OVERRIDES"))},
            derived={"CacheFlag": {"A": ["MEMBER_OVERRIDES"]}},
        )
        results = checker.run()
        assert results.passed
        assert results.comparisons == 3

    def test_exception_entry_excuses_documented_member(self, taxonomies):
        types = {"A": (None, link("CacheFlag#MEMBER_OVERRIDES"))}
        policy = AuditPolicy.build(exceptions={"A": {"CacheFlag": ["MEMBER_OVERRIDES"]}})

        assert make_checker(taxonomies, types, policy=policy).run().passed

        results = make_checker(taxonomies, types).run()
        assert results.mismatches == (
            MismatchFailure("A", "CacheFlag", frozenset({"MEMBER_OVERRIDES"}), frozenset()),
        )
        assert results.mismatches[0].difference == frozenset({"MEMBER_OVERRIDES"})

    def test_subtype_dropping_ancestor_member_fails(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {
                "A": (None, link("CacheFlag#MEMBER_OVERRIDES")),
                "B": ("A", "Fired when something changes."),
            },
            derived={"CacheFlag": {"A": ["MEMBER_OVERRIDES"]}},
        )
        results = checker.run()
        assert results.mismatches == ()
        assert results.inheritance_failures == (
            InheritanceFailure("B", "CacheFlag", frozenset({"MEMBER_OVERRIDES"}), "A"),
        )
        assert not results.passed

    def test_undocumented_type_is_a_warning_only(self, taxonomies, caplog):
        checker = make_checker(
            taxonomies,
            {
                "A": (None, link("Intent#GUILDS")),
                "C": ("A", None),
            },
            derived={"Intent": {"A": ["GUILDS"], "C": ["GUILD_MEMBERS"]}},
        )
        with caplog.at_level(logging.WARNING, logger="capaudit.checker"):
            results = checker.run()

        assert results.passed
        assert results.undocumented == (UndocumentedType("C"),)
        assert results.comparisons == 3
        assert "Undocumented class at C" in caplog.text

    def test_unresolvable_reference_fails_run(self, taxonomies):
        checker = make_checker(taxonomies, {"D": (None, link("Intent#NOT_REAL"))})
        results = checker.run()
        assert results.resolution_failures == (ResolutionFailure("D", "Intent", "Intent#NOT_REAL"),)
        assert not results.passed

    def test_unresolvable_reference_does_not_stop_other_types(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {
                "D": (None, link("Intent#NOT_REAL")),
                "E": (None, link("Intent#GUILDS")),
            },
        )
        results = checker.run()
        assert len(results.resolution_failures) == 1
        assert [f.type_name for f in results.mismatches] == ["E"]

    def test_unresolvable_taxonomy_is_left_out_of_both_checks(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {
                "A": (None, link("Intent#GUILDS")),
                "B": ("A", link("Intent#GUILDZ") + " " + link("CacheFlag#ACTIVITY")),
            },
            derived={"Intent": {"A": ["GUILDS"]}, "CacheFlag": {"B": ["ACTIVITY"]}},
        )
        results = checker.run()
        assert results.inheritance_failures == ()
        assert results.mismatches == ()
        assert len(results.resolution_failures) == 1


class TestMismatchCheck:
    """Tests for the documented-vs-derived comparison."""

    def test_derived_extra_member_fails(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {"A": (None, link("Intent#GUILDS"))},
            derived={"Intent": {"A": ["GUILDS", "GUILD_MEMBERS"]}},
        )
        (failure,) = checker.run().mismatches
        assert failure.missing == frozenset({"GUILD_MEMBERS"})
        assert failure.unexpected == frozenset()

    def test_empty_documentation_against_derived_member_fails(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {"A": (None, "No requirements listed.")},
            derived={"Permission": {"A": ["BAN_MEMBERS"]}},
        )
        (failure,) = checker.run().mismatches
        assert failure.taxonomy == "Permission"
        assert failure.documented == frozenset()

    def test_ignored_members_are_stripped(self, taxonomies):
        policy = AuditPolicy.build(ignored_members={"Intent": ["GUILD_MESSAGES"]})
        checker = make_checker(
            taxonomies,
            {"A": (None, link("Intent#GUILD_MESSAGES") + link("Intent#MESSAGE_CONTENT"))},
            derived={"Intent": {"A": ["MESSAGE_CONTENT"]}},
            policy=policy,
        )
        assert checker.run().passed

    def test_ignored_type_is_not_compared(self, taxonomies):
        policy = AuditPolicy.build(ignored_types={"CacheFlag": ["A"]})
        checker = make_checker(
            taxonomies,
            {"A": (None, link("CacheFlag#ACTIVITY"))},
            policy=policy,
        )
        results = checker.run()
        assert results.passed
        assert results.comparisons == 2
        assert results.ignored == 1

    def test_exception_does_not_hide_a_derived_member(self, taxonomies):
        policy = AuditPolicy.build(exceptions={"A": {"CacheFlag": ["ACTIVITY"]}})
        checker = make_checker(
            taxonomies,
            {"A": (None, link("CacheFlag#ACTIVITY"))},
            derived={"CacheFlag": {"A": ["ACTIVITY"]}},
            policy=policy,
        )
        (failure,) = checker.run().mismatches
        assert failure.documented == frozenset()
        assert failure.missing == frozenset({"ACTIVITY"})

    def test_symmetric_sets_compare_equal_regardless_of_order(self, taxonomies):
        checker = make_checker(
            taxonomies,
            {"A": (None, link("Intent#GUILD_MEMBERS") + link("Intent#GUILDS"))},
            derived={"Intent": {"A": ["GUILDS", "GUILD_MEMBERS"]}},
        )
        assert checker.run().passed

    def test_derivation_error_is_fatal(self, taxonomies):
        index = TypeHierarchyIndex.from_mapping({"A": None}, {"A": link("Intent#GUILDS")})

        def broken(subject):
            raise LookupError("unmapped")

        registry = RequirementRegistry(taxonomies, {"Intent": broken})
        checker = ConsistencyChecker(index, DocumentationExtractor(), registry)
        with pytest.raises(DerivationError):
            checker.run()


class TestInheritanceCheck:
    """Tests for monotonic inheritance of documented obligations."""

    @pytest.fixture
    def chain(self):
        return {
            "A": (None, link("Intent#GUILDS")),
            "B": ("A", link("Intent#GUILDS") + link("Intent#GUILD_MEMBERS")),
            "C": ("B", link("Intent#GUILD_MEMBERS")),
        }

    def derived_for(self, chain):
        return {"Intent": {"A": ["GUILDS"], "B": ["GUILDS", "GUILD_MEMBERS"], "C": ["GUILD_MEMBERS"]}}

    def test_every_documented_ancestor_is_checked(self, taxonomies, chain):
        results = make_checker(taxonomies, chain, self.derived_for(chain)).run()
        assert results.mismatches == ()
        assert results.inheritance_failures == (
            InheritanceFailure("C", "Intent", frozenset({"GUILDS"}), "A"),
            InheritanceFailure("C", "Intent", frozenset({"GUILDS"}), "B"),
        )

    def test_exemption_excuses_subtype(self, taxonomies, chain):
        policy = AuditPolicy.build(exempt_by_taxonomy={"Intent": ["C"]})
        results = make_checker(taxonomies, chain, self.derived_for(chain), policy=policy).run()
        assert results.passed

    def test_exemption_is_taxonomy_scoped(self, taxonomies, chain):
        policy = AuditPolicy.build(exempt_by_taxonomy={"CacheFlag": ["C"]})
        results = make_checker(taxonomies, chain, self.derived_for(chain), policy=policy).run()
        assert len(results.inheritance_failures) == 2

    def test_subtype_exception_excuses_inherited_member(self, taxonomies, chain):
        policy = AuditPolicy.build(exceptions={"C": {"Intent": ["GUILDS"]}})
        results = make_checker(taxonomies, chain, self.derived_for(chain), policy=policy).run()
        assert results.inheritance_failures == ()

    def test_undocumented_intermediate_is_skipped(self, taxonomies):
        types = {
            "A": (None, link("Intent#GUILDS")),
            "B": ("A", None),
            "C": ("B", link("Intent#GUILDS")),
        }
        derived = {"Intent": {"A": ["GUILDS"], "C": ["GUILDS"]}}
        results = make_checker(taxonomies, types, derived).run()
        assert results.passed
        assert results.undocumented == (UndocumentedType("B"),)

    def test_both_checks_report_together(self, taxonomies):
        types = {
            "A": (None, link("Intent#GUILDS")),
            "B": ("A", "Nothing documented."),
        }
        results = make_checker(taxonomies, types, {"Intent": {"B": ["GUILDS"]}}).run()
        assert {f.type_name for f in results.mismatches} == {"A", "B"}
        assert [f.type_name for f in results.inheritance_failures] == ["B"]
        assert results.failure_count == 3


class TestRunProperties:
    """Tests for determinism of a full run."""

    @pytest.fixture
    def universe(self):
        types = {"Root": (None, link("Intent#GUILDS"))}
        for i in range(20):
            description = link("Intent#GUILDS") if i % 3 else "Forgot the requirements."
            types[f"Sub{i:02d}"] = ("Root", description)
        types["Flagged"] = ("Root", link("Intent#GUILDS") + link("CacheFlag#NOPE"))
        return types

    def test_idempotent(self, taxonomies, universe):
        derived = {"Intent": {name: ["GUILDS"] for name in universe}}
        checker = make_checker(taxonomies, universe, derived)
        assert checker.run() == checker.run()

    def test_workers_do_not_change_results(self, taxonomies, universe):
        derived = {"Intent": {name: ["GUILDS"] for name in universe}}
        serial = make_checker(taxonomies, universe, derived).run()
        parallel = make_checker(taxonomies, universe, derived, workers=4).run()
        assert serial == parallel
        assert not serial.passed

    def test_failures_are_sorted_by_taxonomy_then_type(self, taxonomies, universe):
        results = make_checker(taxonomies, universe).run()
        keys = [(results.taxonomies.index(f.taxonomy), f.type_name) for f in results.mismatches]
        assert keys == sorted(keys)
        assert [f.type_name for f in results.inheritance_failures] == sorted(
            f.type_name for f in results.inheritance_failures
        )
