import asyncio
from datetime import date

from classroll.schemas.attendance import Presence
from classroll.services.store import AttendanceStore

DAY = date(2026, 3, 10)
OTHER_DAY = date(2026, 3, 11)
NEW_DAY = date(2026, 3, 12)


def student_names(store, class_id):
    return [s.name for s in store.students_in_class(class_id)]


# ==========================================
# Loading
# ==========================================


async def test_store_is_loading_until_first_fetch(repository):
    store = AttendanceStore(repository)
    assert store.loading

    await store.load()

    assert not store.loading


async def test_load_populates_collections(store):
    assert [c.id for c in store.classes] == ["c1", "c2", "c3"]
    assert [s.id for s in store.students] == ["s1", "s2", "s3"]

    record = store.get_attendance_for_date("c1", DAY)
    assert record.records == {"s1": False}
    assert store.get_attendance_for_date("c1", OTHER_DAY).records == {"s1": True}
    assert len(store.attendance) == 3


async def test_load_failure_keeps_store_usable(repository):
    repository.fail("fetch_students", "fetch_attendance")
    store = AttendanceStore(repository)

    await store.load()

    assert not store.loading
    assert len(store.classes) == 3
    assert store.students == []
    assert store.attendance == []

    created = await store.create_class("7A")
    assert created is not None
    assert created.name == "7A"


async def test_load_survives_refused_connections(repository):
    repository.fail("fetch_classes", "fetch_students", "fetch_attendance", error=ConnectionRefusedError)
    store = AttendanceStore(repository)

    await store.load()

    assert not store.loading
    assert store.classes == []
    assert store.roll_call("c1", DAY) == []


async def test_exposed_collections_are_copies(store):
    store.classes[0].name = "changed"
    store.get_attendance_for_date("c1", DAY).records["s2"] = False

    assert store.get_class("c1").name == "5A"
    assert "s2" not in store.get_attendance_for_date("c1", DAY).records


# ==========================================
# Presence defaults
# ==========================================


async def test_students_missing_from_record_are_present(store):
    record = store.get_attendance_for_date("c1", DAY)

    assert record.presence_of("s2") is Presence.DEFAULT
    assert record.is_present("s2")
    assert not record.is_present("s1")


async def test_missing_record_means_everyone_present(store):
    assert store.get_attendance_for_date("c1", NEW_DAY) is None

    roll_call = store.roll_call("c1", NEW_DAY)

    assert [entry.student.id for entry in roll_call] == ["s1", "s2"]
    assert all(entry.presence is Presence.DEFAULT for entry in roll_call)
    assert all(entry.present for entry in roll_call)


async def test_roll_call_distinguishes_explicit_and_default_presence(store):
    presences = {entry.student.id: entry.presence for entry in store.roll_call("c1", OTHER_DAY)}

    assert presences == {"s1": Presence.PRESENT, "s2": Presence.DEFAULT}


# ==========================================
# Toggle
# ==========================================


async def test_toggle_default_present_student_marks_absent(store, repository):
    result = await store.toggle_attendance("c1", "s2", DAY)

    assert result is False
    assert store.get_attendance_for_date("c1", DAY).records == {"s1": False, "s2": False}
    assert repository.rows[("c1", "s2", DAY)] is False


async def test_toggle_absent_student_marks_present(store, repository):
    result = await store.toggle_attendance("c1", "s1", DAY)

    assert result is True
    assert store.get_attendance_for_date("c1", DAY).records == {"s1": True}
    assert repository.rows[("c1", "s1", DAY)] is True


async def test_toggle_creates_record_for_new_date(store):
    await store.toggle_attendance("c1", "s2", NEW_DAY)

    record = store.get_attendance_for_date("c1", NEW_DAY)
    assert record.class_id == "c1"
    assert record.records == {"s2": False}


async def test_toggle_twice_restores_original_mapping(store, repository):
    before = store.get_attendance_for_date("c1", DAY).records

    await store.toggle_attendance("c1", "s1", DAY)
    await store.toggle_attendance("c1", "s1", DAY)

    assert store.get_attendance_for_date("c1", DAY).records == before
    assert repository.rows[("c1", "s1", DAY)] is False


async def test_toggle_twice_on_default_student_keeps_them_present(store):
    await store.toggle_attendance("c1", "s2", NEW_DAY)
    await store.toggle_attendance("c1", "s2", NEW_DAY)

    assert store.get_attendance_for_date("c1", NEW_DAY).is_present("s2")


async def test_repeated_toggles_converge_to_one_remote_row(store, repository):
    for _ in range(3):
        await store.toggle_attendance("c1", "s2", DAY)

    keys = [key for key in repository.rows if key[1] == "s2"]
    assert keys == [("c1", "s2", DAY)]
    assert repository.rows[("c1", "s2", DAY)] is False


async def test_failed_toggle_of_default_student_leaves_them_present(store, repository):
    repository.fail("upsert_attendance")

    result = await store.toggle_attendance("c1", "s2", NEW_DAY)

    assert result is None
    assert store.get_attendance_for_date("c1", NEW_DAY).is_present("s2")
    assert ("c1", "s2", NEW_DAY) not in repository.rows


async def test_failed_toggle_restores_explicit_absence(store, repository):
    repository.fail("upsert_attendance")

    await store.toggle_attendance("c1", "s1", DAY)

    assert store.get_attendance_for_date("c1", DAY).records["s1"] is False


async def test_toggle_reverts_when_connection_drops(store, repository, notifier):
    repository.fail("upsert_attendance", error=ConnectionResetError)

    result = await store.toggle_attendance("c1", "s2", DAY)

    assert result is None
    assert store.get_attendance_for_date("c1", DAY).is_present("s2")
    assert notifier.notifications == []


async def test_connection_errors_leave_mutations_unapplied(store, repository):
    repository.fail("insert_class", "delete_class", "insert_students", error=OSError)

    assert await store.create_class("7B") is None
    assert not await store.delete_class("c1")
    assert await store.import_students("c1", ["Diego"]) == []
    assert len(store.classes) == 3
    assert student_names(store, "c1") == ["Ana", "Bruno"]


async def test_toggle_is_visible_before_remote_write_completes(store, repository):
    repository.gate = asyncio.Event()
    repository.upsert_started = asyncio.Event()

    task = asyncio.create_task(store.toggle_attendance("c1", "s2", DAY))
    await repository.upsert_started.wait()

    assert store.get_attendance_for_date("c1", DAY).records["s2"] is False

    repository.gate.set()
    assert await task is False


async def test_pending_toggle_is_reverted_when_write_fails(store, repository):
    repository.gate = asyncio.Event()
    repository.upsert_started = asyncio.Event()
    repository.fail("upsert_attendance")

    task = asyncio.create_task(store.toggle_attendance("c1", "s2", DAY))
    await repository.upsert_started.wait()
    assert not store.get_attendance_for_date("c1", DAY).is_present("s2")

    repository.gate.set()
    assert await task is None
    assert store.get_attendance_for_date("c1", DAY).is_present("s2")


async def test_successful_toggle_notifies_once(store, notifier):
    await store.toggle_attendance("c1", "s2", DAY)

    assert len(notifier.notifications) == 1
    notification = notifier.notifications[0]
    assert notification.student_id == "s2"
    assert notification.class_id == "c1"
    assert notification.present is False
    assert notification.attendance_date == DAY
    assert notification.student_name == "Bruno"
    assert notification.class_name == "5A"


async def test_failed_toggle_does_not_notify(store, repository, notifier):
    repository.fail("upsert_attendance")

    await store.toggle_attendance("c1", "s2", DAY)

    assert notifier.notifications == []


# ==========================================
# Classes
# ==========================================


async def test_create_class_trims_and_appends(store, repository):
    created = await store.create_class("  7B  ")

    assert created.name == "7B"
    assert store.classes[-1] == created
    assert repository.classes[-1].name == "7B"


async def test_create_class_does_not_validate_empty_names(store, repository):
    created = await store.create_class("   ")

    assert repository.calls.count("insert_class") == 1
    assert created.name == ""


async def test_failed_create_class_leaves_classes_untouched(store, repository):
    repository.fail("insert_class")

    assert await store.create_class("7B") is None
    assert len(store.classes) == 3


async def test_rename_class(store, repository):
    assert await store.rename_class("c1", " 5A Manhã ")

    assert store.get_class("c1").name == "5A Manhã"
    assert repository.classes[0].name == "5A Manhã"


async def test_failed_rename_keeps_old_name(store, repository):
    repository.fail("update_class")

    assert not await store.rename_class("c1", "Other")
    assert store.get_class("c1").name == "5A"


async def test_delete_class_cascades(store):
    assert await store.delete_class("c1")

    assert store.get_class("c1") is None
    assert all(s.class_id != "c1" for s in store.students)
    assert all(r.class_id != "c1" for r in store.attendance)
    assert store.get_attendance_for_date("c2", DAY).records == {"s3": False}
    assert student_names(store, "c2") == ["Carla"]


async def test_failed_delete_class_changes_nothing(store, repository):
    repository.fail("delete_class")

    assert not await store.delete_class("c1")

    assert store.get_class("c1") is not None
    assert student_names(store, "c1") == ["Ana", "Bruno"]
    assert store.get_attendance_for_date("c1", DAY) is not None


# ==========================================
# Students
# ==========================================


async def test_add_student(store, repository):
    student = await store.add_student("c1", "  Diego ")

    assert student.name == "Diego"
    assert student.class_id == "c1"
    assert student_names(store, "c1") == ["Ana", "Bruno", "Diego"]


async def test_add_student_skips_case_insensitive_duplicate(store, repository):
    assert await store.add_student("c1", "ANA") is None

    assert "insert_students" not in repository.calls
    assert student_names(store, "c1") == ["Ana", "Bruno"]


async def test_same_name_allowed_in_another_class(store):
    student = await store.add_student("c2", "Ana")

    assert student is not None
    assert student_names(store, "c2") == ["Carla", "Ana"]


async def test_failed_add_student_leaves_roster_untouched(store, repository):
    repository.fail("insert_students")

    assert await store.add_student("c1", "Diego") is None
    assert student_names(store, "c1") == ["Ana", "Bruno"]


async def test_import_deduplicates_case_insensitively(store):
    created = await store.import_students("c3", ["Ana", "ana", "Bruno"])

    assert [s.name for s in created] == ["Ana", "Bruno"]
    assert student_names(store, "c3") == ["Ana", "Bruno"]


async def test_import_skips_existing_students(store, repository):
    created = await store.import_students("c1", ["ANA", "Diego", " diego ", "Eva", "bruno"])

    assert [s.name for s in created] == ["Diego", "Eva"]
    assert student_names(store, "c1") == ["Ana", "Bruno", "Diego", "Eva"]
    assert repository.calls.count("insert_students") == 1


async def test_import_with_nothing_new_is_a_noop(store, repository):
    created = await store.import_students("c1", ["ana", "BRUNO", "  "])

    assert created == []
    assert "insert_students" not in repository.calls


async def test_import_never_creates_duplicates(store):
    await store.import_students("c1", ["Diego", "DIEGO"])
    await store.import_students("c1", ["diego", "Ana", "Eva", "eva"])

    names = [n.lower() for n in student_names(store, "c1")]
    assert len(names) == len(set(names))


async def test_failed_import_leaves_roster_untouched(store, repository):
    repository.fail("insert_students")

    assert await store.import_students("c1", ["Diego"]) == []
    assert student_names(store, "c1") == ["Ana", "Bruno"]


async def test_delete_students_strips_attendance_keys(store):
    await store.toggle_attendance("c1", "s2", DAY)

    assert await store.delete_students(["s1", "s2"])

    assert student_names(store, "c1") == []
    # Records survive with empty mappings
    assert store.get_attendance_for_date("c1", DAY).records == {}
    assert store.get_attendance_for_date("c1", OTHER_DAY).records == {}
    assert store.get_attendance_for_date("c2", DAY).records == {"s3": False}


async def test_delete_student(store, repository):
    assert await store.delete_student("s1")

    assert store.get_student("s1") is None
    assert all("s1" not in r.records for r in store.attendance)
    assert len(store.attendance) == 3


async def test_failed_delete_student_changes_nothing(store, repository):
    repository.fail("delete_students")

    assert not await store.delete_student("s1")

    assert store.get_student("s1") is not None
    assert store.get_attendance_for_date("c1", DAY).records == {"s1": False}


async def test_delete_students_with_no_ids_is_a_noop(store, repository):
    assert not await store.delete_students([])
    assert "delete_students" not in repository.calls
