import unittest

from ai_changelog.analysis.semantic import DiffAnalysis, analyze_diff, changed_lines, merge_analyses


class TestAnalyzeDiff(unittest.TestCase):
    def test_python_function_and_error_handling(self) -> None:
        diff = (
            "--- a/app/service.py\n"
            "+++ b/app/service.py\n"
            "+def load_user(user_id):\n"
            "+    try:\n"
            "+        return db.get(user_id)\n"
            "+    except KeyError:\n"
            "+        raise NotFound(user_id)\n"
        )
        result = analyze_diff(diff, "app/service.py")
        self.assertIn("function_definition", result.patterns)
        self.assertIn("error_handling", result.patterns)
        self.assertIn("load_user", result.code_elements)
        self.assertEqual(result.change_type, "added")
        self.assertEqual(result.frameworks, frozenset())

    def test_react_hooks_detected_for_tsx(self) -> None:
        diff = "+const [open, setOpen] = useState(false)\n+useEffect(() => {}, [])\n"
        result = analyze_diff(diff, "src/components/Menu.tsx")
        self.assertIn("React", result.frameworks)
        self.assertIn("react_hooks", result.patterns)
        self.assertIn("state_management", result.patterns)

    def test_api_endpoint_methods(self) -> None:
        diff = "+export async function GET(request) {\n+router.post('/items', handler)\n"
        result = analyze_diff(diff, "app/api/items/route.ts")
        self.assertIn("API", result.frameworks)
        self.assertIn("api_endpoint", result.patterns)
        self.assertEqual(result.api_changes, ("GET", "POST"))

    def test_database_schema(self) -> None:
        diff = "+CREATE TABLE users (id int);\n"
        result = analyze_diff(diff, "db/migrations/001.sql")
        self.assertIn("Database", result.frameworks)
        self.assertIn("database_schema", result.patterns)

    def test_context_lines_are_ignored(self) -> None:
        diff = " def unchanged():\n+x = 1\n"
        result = analyze_diff(diff, "mod.py")
        self.assertNotIn("function_definition", result.patterns)

    def test_empty_and_binary_diffs(self) -> None:
        self.assertTrue(analyze_diff("", "a.py").is_empty)
        self.assertTrue(analyze_diff("   \n", "a.py").is_empty)
        self.assertTrue(analyze_diff("Binary files a/x.png and b/x.png differ", "x.png").is_empty)
        self.assertEqual(analyze_diff("", "a.py").change_type, "none")

    def test_removed_and_modified_change_types(self) -> None:
        self.assertEqual(analyze_diff("-x = 1\n", "a.py").change_type, "removed")
        self.assertEqual(analyze_diff("-x = 1\n+x = 2\n", "a.py").change_type, "modified")


class TestChangedLines(unittest.TestCase):
    def test_double_dash_content_inside_hunk_is_kept(self) -> None:
        diff = (
            "--- a/db/seed.sql\n"
            "+++ b/db/seed.sql\n"
            "@@ -1,2 +1,2 @@\n"
            "--- old comment\n"
            "+-- new comment\n"
            "+++ counter\n"
            "-DELETE FROM t;\n"
        )
        added, removed = changed_lines(diff)
        self.assertEqual(added, ["-- new comment", "++ counter"])
        self.assertEqual(removed, ["-- old comment", "DELETE FROM t;"])
        self.assertEqual(analyze_diff(diff, "db/seed.sql").change_type, "modified")

    def test_headers_of_each_file_are_skipped(self) -> None:
        diff = (
            "diff --git a/a.lua b/a.lua\n"
            "--- a/a.lua\n"
            "+++ b/a.lua\n"
            "@@ -1 +1 @@\n"
            "+--- banner\n"
            "diff --git a/b.lua b/b.lua\n"
            "--- a/b.lua\n"
            "+++ b/b.lua\n"
            "@@ -1 +0,0 @@\n"
            "-x = 1\n"
        )
        self.assertEqual(changed_lines(diff), (["--- banner"], ["x = 1"]))

    def test_hunkless_fragments(self) -> None:
        self.assertEqual(changed_lines("+a\n-b\n c\n"), (["a"], ["b"]))


class TestMergeAnalyses(unittest.TestCase):
    def test_union(self) -> None:
        first = DiffAnalysis(patterns=frozenset({"a"}), change_type="added", api_changes=("GET",))
        second = DiffAnalysis(patterns=frozenset({"b"}), change_type="removed", api_changes=("GET", "PUT"))
        merged = merge_analyses([first, second])
        self.assertEqual(merged.patterns, frozenset({"a", "b"}))
        self.assertEqual(merged.change_type, "modified")
        self.assertEqual(merged.api_changes, ("GET", "PUT"))

    def test_single_kind_and_empty(self) -> None:
        self.assertEqual(merge_analyses([DiffAnalysis(change_type="added"), DiffAnalysis()]).change_type, "added")
        self.assertTrue(merge_analyses([]).is_empty)


if __name__ == "__main__":
    unittest.main()
