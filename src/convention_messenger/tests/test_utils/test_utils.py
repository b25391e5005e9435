import hashlib
import uuid

from convention_messenger.utils.logging import ProjectInfo, find_pyproject, read_pyproject_info
from convention_messenger.utils.participant_key import canonical_participants, make_participant_key


class TestParticipantKey:

    def test_order_and_duplicates_do_not_matter(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        assert make_participant_key([a, b, c]) == make_participant_key([c, a, b, a])

    def test_different_sets_differ(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        assert make_participant_key([a, b]) != make_participant_key([a, b, c])

    def test_sha256_of_sorted_ids(self):
        a, b = uuid.UUID(int=2), uuid.UUID(int=1)
        expected = hashlib.sha256(f"{b},{a}".encode()).hexdigest()

        assert canonical_participants([a, b, a]) == [b, a]
        assert make_participant_key([a, b]) == expected
        assert len(expected) == 64


class TestProjectInfo:

    def test_reads_nearest_pyproject(self, tmp_path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "messenger"\nversion = "1.2.3"\n')
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)

        assert find_pyproject(nested) == tmp_path / "pyproject.toml"
        assert read_pyproject_info(nested) == ProjectInfo("messenger", "1.2.3")

    def test_missing_or_broken_pyproject(self, tmp_path):
        assert find_pyproject(tmp_path, max_up=1) is None

        (tmp_path / "pyproject.toml").write_text("[project\n")
        assert read_pyproject_info(tmp_path) == ProjectInfo(None, None)
