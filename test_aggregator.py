# test_aggregator.py
import json
import unittest
from datetime import datetime, timedelta, timezone

import aggregator
import report_builder
from models import (
    CATEGORIES,
    NEW_ACTIVITY,
    ChangeSet,
    Commit,
    FileChange,
    NarrativeSections,
    ReportMetadata,
)

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_commit(message, days=0, author="Alice", email="alice@example.com", files=()):
    return Commit(
        hash=f"{abs(hash((message, days))):040x}"[:40],
        timestamp=BASE_TIME + timedelta(days=days),
        author_name=author,
        author_email=email,
        message=message,
        files=tuple(files),
    )


def five_commit_changeset() -> ChangeSet:
    """7 天内 5 个提交: 3 个 feat, 1 个 fix, 1 个无法解析"""
    commits = [
        make_commit("feat: add login page", 0, files=[FileChange("web/login.tsx", 120, 4)]),
        make_commit("feat(api): token refresh", 2, files=[FileChange("api/auth.py", 40, 10)]),
        make_commit(
            "feat!: drop legacy sessions",
            3,
            author="Bob",
            email="bob@example.com",
            files=[FileChange("api/session.py", 5, 80), FileChange("README.md", 3, 1)],
        ),
        make_commit("fix: handle empty password", 5, files=[FileChange("api/auth.py", 6, 2)]),
        make_commit("wip stuff", 6, author="Bob", email="bob@example.com",
                    files=[FileChange("notes", 1, 0)]),
    ]
    commits.sort(key=lambda c: c.timestamp, reverse=True)
    return ChangeSet(commits=tuple(commits), branch="main")


class TestCategorize(unittest.TestCase):

    def test_conventional_prefixes(self):
        self.assertEqual(aggregator.categorize("feat: add x"), "feature")
        self.assertEqual(aggregator.categorize("feat(ui): add x"), "feature")
        self.assertEqual(aggregator.categorize("feat!: breaking"), "feature")
        self.assertEqual(aggregator.categorize("fix(core)!: urgent"), "fix")
        self.assertEqual(aggregator.categorize("hotfix: prod"), "fix")
        self.assertEqual(aggregator.categorize("docs: readme"), "docs")
        self.assertEqual(aggregator.categorize("perf: faster loop"), "refactor")
        self.assertEqual(aggregator.categorize("tests: more cases"), "test")
        self.assertEqual(aggregator.categorize("ci: cache deps"), "chore")
        self.assertEqual(aggregator.categorize("FEAT: shouting"), "feature")

    def test_malformed_messages_are_other(self):
        """不完全符合语法的提交信息一律归入 other，不做关键字猜测"""
        for message in (
            "Fixed the login bug",
            "feat:no space",
            "feat: ",
            "feat/fix: compound",
            "feat(: broken scope",
            "unknown: type",
            "",
            "Merge branch 'main' into dev",
        ):
            with self.subTest(message=message):
                self.assertEqual(aggregator.categorize(message), "other")

    def test_only_first_line_is_used(self):
        self.assertEqual(aggregator.categorize("update\n\nfeat: in body"), "other")
        self.assertEqual(aggregator.categorize("fix: x\n\nmore text"), "fix")


class TestComputeStatistics(unittest.TestCase):

    def test_five_commit_scenario(self):
        stats = aggregator.compute_statistics(five_commit_changeset())

        self.assertEqual(stats.commit_count, 5)
        self.assertEqual(stats.categories["feature"], 3)
        self.assertEqual(stats.categories["fix"], 1)
        self.assertEqual(stats.categories["other"], 1)
        self.assertEqual(sum(stats.categories.values()), stats.commit_count)
        self.assertEqual(stats.author_count, 2)
        self.assertEqual(stats.file_count, 5)
        self.assertEqual(stats.lines_added, 175)
        self.assertEqual(stats.lines_removed, 97)
        self.assertEqual(stats.most_active_area, "api")
        self.assertEqual(stats.directories["api"], 3)
        self.assertEqual(stats.directories["."], 2)
        self.assertEqual(stats.extensions[".py"], 3)
        self.assertEqual(stats.extensions["(none)"], 1)
        self.assertEqual(stats.file_stats[0].filename, "api/auth.py")
        self.assertEqual(stats.file_stats[0].commits, 2)
        self.assertEqual(stats.first_commit, BASE_TIME)
        self.assertEqual(stats.last_commit, BASE_TIME + timedelta(days=6))

        # light + json: 只有顶层摘要键，没有逐文件统计
        content = report_builder.render(
            stats,
            NarrativeSections(sections={"summary": "Shipped login.", "highlights": "- a"}),
            "json",
            "light",
            ReportMetadata(repo_name="demo"),
        )
        doc = json.loads(content)
        self.assertEqual(set(doc), {"metadata", "totals", "narrative"})
        self.assertNotIn("files", doc)

    def test_empty_changeset(self):
        stats = aggregator.compute_statistics(ChangeSet())
        self.assertEqual(stats.commit_count, 0)
        self.assertEqual(stats.file_count, 0)
        self.assertEqual(stats.lines_added, 0)
        self.assertEqual(stats.lines_removed, 0)
        self.assertEqual(stats.author_count, 0)
        self.assertEqual(stats.categories, {c: 0 for c in CATEGORIES})
        self.assertIsNone(stats.most_active_area)
        self.assertIsNone(stats.first_commit)

    def test_deterministic(self):
        changeset = five_commit_changeset()
        first = aggregator.compute_statistics(changeset)
        second = aggregator.compute_statistics(changeset)
        self.assertEqual(first, second)
        self.assertEqual(list(first.directories), list(second.directories))

    def test_ignore_patterns_keep_commit_totals(self):
        changeset = ChangeSet(commits=(
            make_commit("chore: bump deps", files=[
                FileChange("package-lock.json", 900, 800),
                FileChange("package.json", 1, 1),
            ]),
        ))
        stats = aggregator.compute_statistics(changeset, ["package-lock.json", "*.lock"])
        self.assertEqual(stats.commit_count, 1)
        self.assertEqual(stats.file_count, 1)
        self.assertEqual(stats.lines_added, 1)
        self.assertEqual(stats.categories["chore"], 1)

    def test_binary_files_count_without_lines(self):
        changeset = ChangeSet(commits=(
            make_commit("docs: add diagram", files=[FileChange("docs/arch.png")]),
        ))
        stats = aggregator.compute_statistics(changeset)
        self.assertEqual(stats.file_count, 1)
        self.assertEqual(stats.lines_added, 0)
        self.assertEqual(stats.file_stats[0].changes, 0)

    def test_directory_ties_are_broken_by_name(self):
        changeset = ChangeSet(commits=(
            make_commit("fix: a", files=[FileChange("zeta/a.py", 1, 0), FileChange("alpha/b.py", 1, 0)]),
        ))
        stats = aggregator.compute_statistics(changeset)
        self.assertEqual(stats.most_active_area, "alpha")


class TestDeltas(unittest.TestCase):

    def test_zero_commit_prior_period_is_new_activity(self):
        current = aggregator.compute_statistics(five_commit_changeset())
        previous = aggregator.compute_statistics(ChangeSet())
        deltas = aggregator.compute_deltas(current, previous)
        self.assertEqual(set(deltas), set(aggregator.DELTA_METRICS))
        for delta in deltas.values():
            self.assertEqual(delta.change, NEW_ACTIVITY)
            self.assertTrue(delta.is_new_activity)

    def test_both_periods_empty(self):
        empty = aggregator.compute_statistics(ChangeSet())
        deltas = aggregator.compute_deltas(empty, empty)
        self.assertEqual(deltas["commits"].change, NEW_ACTIVITY)

    def test_percentage_change(self):
        prior = ChangeSet(commits=(
            make_commit("feat: a", files=[FileChange("a.py", 10, 0)]),
            make_commit("fix: b", files=[FileChange("b.py", 10, 4)]),
        ))
        current = ChangeSet(commits=(
            make_commit("feat: c", files=[FileChange("c.py", 30, 0)]),
            make_commit("feat: d", files=[FileChange("d.py", 1, 0)]),
            make_commit("fix: e", files=[FileChange("e.py", 1, 0)]),
        ))
        stats = aggregator.with_comparison(
            aggregator.compute_statistics(current), aggregator.compute_statistics(prior)
        )
        self.assertEqual(stats.deltas["commits"].change, 50.0)
        self.assertEqual(stats.deltas["lines_added"].change, 60.0)
        self.assertEqual(stats.deltas["lines_removed"].change, -100.0)
        self.assertEqual(stats.deltas["authors"].change, 0.0)
        self.assertEqual(stats.deltas["commits"].previous, 2)

    def test_metric_zero_in_prior_period(self):
        prior = ChangeSet(commits=(make_commit("docs: a"),))
        current = ChangeSet(commits=(make_commit("docs: b", files=[FileChange("x.md", 2, 0)]),))
        deltas = aggregator.compute_deltas(
            aggregator.compute_statistics(current), aggregator.compute_statistics(prior)
        )
        self.assertEqual(deltas["lines_added"].change, NEW_ACTIVITY)
        self.assertEqual(deltas["lines_removed"].change, 0.0)

    def test_with_comparison_without_prior(self):
        stats = aggregator.compute_statistics(five_commit_changeset())
        self.assertIs(aggregator.with_comparison(stats, None), stats)


if __name__ == "__main__":
    unittest.main()
