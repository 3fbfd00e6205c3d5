from datetime import datetime, timedelta, timezone

from yogaflow.engine.catalog import POSES, SAMPLE_ROUTINES, get_pose, poses_by_category, poses_by_difficulty
from yogaflow.store import MemoryStore

NOW = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)


class TestRoutines:
    def test_seeded_with_sample_routines(self):
        store = MemoryStore()
        names = {r["name"] for r in store.list_routines()}
        assert names == {"Morning Flow", "Strength Builder", "Evening Calm"}
        assert all(r["id"] and r["created_at"] for r in store.list_routines())

    def test_seeding_does_not_share_pose_lists(self):
        store = MemoryStore()
        store.list_routines()[0]["poses"].append({"name": "extra"})
        assert all(len(r["poses"]) < 6 for r in SAMPLE_ROUTINES)

    def test_filter_by_difficulty(self):
        store = MemoryStore()
        beginner = store.list_routines_by_difficulty("beginner")
        assert [r["name"] for r in beginner] == ["Morning Flow"]
        assert store.list_routines_by_difficulty("expert") == []

    def test_get_routine(self):
        store = MemoryStore(seed_routines=False)
        created = store.create_routine({"name": "Lunch Stretch", "difficulty": "beginner", "poses": []})
        assert store.get_routine(created["id"]) == created
        assert store.get_routine("missing") is None


class TestUsers:
    def test_create_and_lookup(self):
        store = MemoryStore()
        user = store.create_user("asha", "hash", "asha@example.com")
        assert store.get_user(user["id"]) == user
        assert store.get_user_by_username("asha") == user
        assert store.get_user_by_username("nobody") is None
        assert store.list_users() == [user]

    def test_update_password(self):
        store = MemoryStore()
        store.create_user("asha", "old")
        assert store.update_password("asha", "new")
        assert store.get_user_by_username("asha")["password"] == "new"
        assert not store.update_password("nobody", "new")


class TestProgress:
    def test_progress_is_stamped_and_scoped_to_user(self):
        store = MemoryStore()
        row = store.create_progress({"user_id": "u1", "routine_id": "r1", "duration": 600}, NOW)
        store.create_progress({"user_id": "u2", "duration": 300}, NOW)
        assert row["completed_at"] == NOW.isoformat()
        assert row["rating"] is None
        assert store.list_progress("u1") == [row]
        assert store.list_progress_by_routine("u1", "r1") == [row]
        assert store.list_progress_by_routine("u1", "r2") == []


class TestAssessments:
    def test_create_and_lookup_by_user(self):
        store = MemoryStore()
        a = store.create_assessment({"user_id": "u1", "age_group": "25-34", "goals": ["flexibility"]})
        assert a["health_conditions"] is None
        assert store.get_assessment_by_user("u1") == a
        assert store.get_assessment_by_user("u2") is None


class TestPendingCodes:
    def test_put_get_delete(self):
        store = MemoryStore()
        store.put_pending_code("asha", "a@example.com", "123456", NOW + timedelta(minutes=10))
        assert store.get_pending_code("asha", "a@example.com")["code"] == "123456"
        assert store.get_pending_code("asha", "other@example.com") is None
        store.delete_pending_code("asha", "a@example.com")
        assert store.get_pending_code("asha", "a@example.com") is None

    def test_new_code_replaces_old_for_username(self):
        store = MemoryStore()
        store.put_pending_code("asha", "a@example.com", "111111", NOW)
        store.put_pending_code("asha", "b@example.com", "222222", NOW)
        assert store.get_pending_code("asha", "a@example.com") is None
        assert store.get_pending_code("asha", "b@example.com")["code"] == "222222"

    def test_records_purpose(self):
        store = MemoryStore()
        store.put_pending_code("asha", "a@example.com", "123456", NOW + timedelta(minutes=10), purpose="password-change")
        assert store.get_pending_code("asha", "a@example.com")["purpose"] == "password-change"

    def test_expired_codes_are_swept_on_put(self):
        store = MemoryStore()
        store.put_pending_code("old", "o@example.com", "111111", NOW - timedelta(minutes=1), now=NOW)
        store.put_pending_code("live", "l@example.com", "222222", NOW + timedelta(minutes=5), now=NOW)
        store.put_pending_code("asha", "a@example.com", "333333", NOW + timedelta(minutes=10), now=NOW)
        assert store.get_pending_code("old", "o@example.com") is None
        assert store.get_pending_code("live", "l@example.com")["code"] == "222222"
        assert store.get_pending_code("asha", "a@example.com")["code"] == "333333"


class TestPoseCatalog:
    def test_get_pose_by_index(self):
        assert get_pose(0)["name"] == POSES[0].name
        assert get_pose(0)["id"] == 0
        assert get_pose(len(POSES)) is None
        assert get_pose(-1) is None

    def test_filters_are_case_insensitive(self):
        assert poses_by_category("RELAXATION") == poses_by_category("relaxation")
        assert all(p["goal_category"] == "relaxation" for p in poses_by_category("Relaxation"))
        assert all(p["difficulty"] == "advanced" for p in poses_by_difficulty("Advanced"))
        assert poses_by_difficulty("impossible") == []
