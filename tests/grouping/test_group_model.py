import unittest

from ai_changelog.grouping.group_model import CommitGroup


class TestGroupModel(unittest.TestCase):
    def test_commit_group_dataclass(self) -> None:
        group = CommitGroup(type="feat", files=["a.py"], message="feat: add feature\n\n- a.py", diffs={"a.py": "diff"})
        self.assertEqual(group.type, "feat")
        self.assertEqual(group.files, ["a.py"])
        self.assertEqual(group.subject, "feat: add feature")
        self.assertEqual(group.diffs["a.py"], "diff")

    def test_empty_message_subject(self) -> None:
        self.assertEqual(CommitGroup(type="chore", files=[], message="").subject, "")


if __name__ == "__main__":
    unittest.main()
