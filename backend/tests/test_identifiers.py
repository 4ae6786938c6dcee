from app.services.identifiers import IdentifierMapper


def test_ids_follow_insertion_order_and_are_stable_within_a_call():
    mapper = IdentifierMapper()
    assert mapper.assign_faculty(["t-a", "t-b"]) == ["F001", "F002"]
    assert mapper.assign_students(["s-x", "s-y", "s-z"]) == ["S001", "S002", "S003"]
    assert mapper.faculty_id("t-a") == "F001"
    assert mapper.student_id("s-z") == "S003"
    assert mapper.group_id("CS|1") == "G001"


def test_mapping_is_a_bijection():
    mapper = IdentifierMapper()
    internal = [f"user-{index}" for index in range(25)]
    synthetic = mapper.assign_students(internal)
    assert len(set(synthetic)) == len(internal)
    assert [mapper.internal_id(item) for item in synthetic] == internal


def test_faculty_and_student_spaces_do_not_collide():
    mapper = IdentifierMapper()
    mapper.faculty_id("same-id")
    mapper.student_id("same-id")
    assert mapper.internal_id("F001") == "same-id"
    assert mapper.internal_id("S001") == "same-id"
    assert mapper.internal_id("G001") is None
    assert mapper.internal_id("S999") is None


def test_round_trip_through_persisted_form_keeps_numbering():
    mapper = IdentifierMapper()
    students = [f"s-{index}" for index in range(1005)]
    mapper.assign_students(students)
    mapper.faculty_id("t-1")

    restored = IdentifierMapper.from_dict(mapper.to_dict())
    assert restored.students.synthetic("s-0") == "S001"
    assert restored.students.synthetic("s-999") == "S1000"
    assert restored.internal_id("S1005") == "s-1004"
    assert restored.faculty.synthetic("t-1") == "F001"


def test_from_dict_tolerates_missing_data():
    mapper = IdentifierMapper.from_dict(None)
    assert mapper.to_dict() == {"faculty": {}, "students": {}}
