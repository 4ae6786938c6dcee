from app.services.compiler import RequestCompiler, match_course_codes, resolve_expertise, split_components
from app.services.repair import repair_request
from app.services.roster import CourseRecord, Roster, StudentRecord, TeacherRecord, preference_codes


def make_roster(**overrides) -> Roster:
    data = {
        "students": [
            StudentRecord(id="stu-1", name="Asha", email="asha@example.com", program="CSE", semester="3"),
            StudentRecord(id="stu-2", name="Bilal", email="bilal@example.com", program="CSE", semester="3"),
            StudentRecord(id="stu-3", name="Chen", email="chen@example.com", program="ECE", semester="1"),
        ],
        "teachers": [
            TeacherRecord(id="tch-1", name="Dr. Rao", email="rao@example.com", interests=("cs",)),
            TeacherRecord(id="tch-2", name="Dr. Iyer", email="iyer@example.com", department="MA"),
        ],
        "courses": [
            CourseRecord(id="c-1", code="cs201", name="Data Structures", credits=4),
            CourseRecord(id="c-2", code="MA201", name="Linear Algebra", credits=3),
            CourseRecord(id="c-3", code="HS101", name="Ethics", credits=1),
        ],
    }
    data.update(overrides)
    return Roster(**data)


def test_theory_lab_split():
    components, lab_required = split_components(4)
    assert components.model_dump(exclude_none=True) == {"theory": 3, "lab": 1}
    assert lab_required is True

    components, lab_required = split_components(3)
    assert components.model_dump(exclude_none=True) == {"theory": 3}
    assert lab_required is False

    components, _ = split_components(1)
    assert components.model_dump(exclude_none=True) == {"theory": 1}


def test_expertise_matching_prefers_interests_then_department_then_all():
    codes = ["CS201", "MA201", "HS101"]
    assert match_course_codes(["cs"], codes) == ["CS201"]
    assert match_course_codes(["CS201-advanced"], codes) == ["CS201"]
    assert match_course_codes(["ma201 linear"], codes) == ["MA201"]
    assert match_course_codes(["MA"], codes) == ["MA201"]

    by_interest = TeacherRecord(id="t", name="T", email="t@example.com", interests=("hs1",), department="CS")
    assert resolve_expertise(by_interest, codes) == ["HS101"]

    by_department = TeacherRecord(id="t", name="T", email="t@example.com", interests=("robotics",), department="ma")
    assert resolve_expertise(by_department, codes) == ["MA201"]

    unmatched = TeacherRecord(id="t", name="T", email="t@example.com", interests=("poetry",), department="Arts")
    assert resolve_expertise(unmatched, codes) == codes


def test_preference_codes_accept_both_key_styles():
    raw = [{"courseCode": "cs201"}, {"course_code": "MA201", "priority": 2}, "hs101", {"other": 1}, {"courseCode": "CS201"}]
    assert preference_codes(raw) == ("CS201", "MA201", "HS101")


def test_compile_groups_students_by_program_and_semester():
    compiled = RequestCompiler().compile(make_roster())
    request = compiled.request

    groups = {group.group_id: group for group in request.student_groups}
    assert list(groups) == ["G001", "G002"]
    assert groups["G001"].program == "CSE"
    assert groups["G001"].semester == "3"
    assert groups["G001"].students == ["S001", "S002"]
    assert groups["G002"].students == ["S003"]
    assert compiled.identifiers.internal_id("S003") == "stu-3"
    assert compiled.identifiers.internal_id("F002") == "tch-2"


def test_compile_without_availability_uses_default_calendar():
    roster = make_roster(
        students=[StudentRecord(id="s", name="S", email="s@example.com")],
        teachers=[TeacherRecord(id="t", name="T", email="t@example.com")],
        courses=[CourseRecord(id="c", code="CS101", name="Intro")],
    )
    request = RequestCompiler().compile(roster).request

    assert len(request.time_slots) == 40
    assert request.faculty[0].available_slots == request.time_slots
    assert request.courses[0].credit_hours == 3
    assert request.student_groups[0].program == "General"
    assert request.student_groups[0].semester == "1"
    assert request.time_limit == 10


def test_compile_derives_course_fields():
    request = RequestCompiler().compile(make_roster(), time_limit=30).request
    courses = {course.course_code: course for course in request.courses}

    assert request.time_limit == 30
    assert list(courses) == ["CS201", "MA201", "HS101"]
    assert courses["CS201"].components.lab == 1
    assert courses["CS201"].lab_required is True
    assert courses["HS101"].components.theory == 1
    assert courses["CS201"].possible_faculty == ["F001"]
    assert courses["MA201"].possible_faculty == ["F002"]
    # Nobody teaches HS101 by interest or department, so every faculty may.
    assert courses["HS101"].possible_faculty == ["F001", "F002"]
    # No declared preferences anywhere: every course goes to every group.
    assert courses["CS201"].student_groups == ["G001", "G002"]


def test_compile_attaches_courses_to_groups_that_take_them():
    students = [
        StudentRecord(id="s1", name="A", email="a@example.com", program="CSE", semester="3", course_preferences=("CS201",)),
        StudentRecord(id="s2", name="B", email="b@example.com", program="ECE", semester="1", max_courses=2),
    ]
    request = RequestCompiler().compile(make_roster(students=students)).request
    courses = {course.course_code: course for course in request.courses}
    groups = {group.group_id: group for group in request.student_groups}

    assert groups["G001"].course_choices.major == ["CS201"]
    # A group without declared preferences takes the first max_courses codes.
    assert groups["G002"].course_choices.major == ["CS201", "MA201"]
    assert courses["CS201"].student_groups == ["G001", "G002"]
    assert courses["MA201"].student_groups == ["G002"]
    # Nobody takes HS101, so it is offered to every group.
    assert courses["HS101"].student_groups == ["G001", "G002"]


def test_every_major_course_lists_its_group_after_repair():
    students = [
        StudentRecord(id="s1", name="A", email="a@example.com", program="CSE", semester="3", course_preferences=("CS201",)),
        StudentRecord(id="s2", name="B", email="b@example.com", program="ECE", semester="1"),
        StudentRecord(id="s3", name="C", email="c@example.com", program="ME", semester="5", course_preferences=("ZZ999",)),
    ]
    report = repair_request(RequestCompiler().compile(make_roster(students=students)).request)
    courses = {course.course_code: course for course in report.request.courses}

    for group in report.request.student_groups:
        assert group.course_choices.major
        for code in group.course_choices.major:
            assert group.group_id in courses[code].student_groups, (group.group_id, code)


def test_compile_faculty_slots_and_hours():
    teachers = [
        TeacherRecord(id="t1", name="A", email="a@example.com", availability=("Tue_10", "junk"), working_hours=12),
        TeacherRecord(id="t2", name="B", email="b@example.com"),
    ]
    students = [StudentRecord(id="s1", name="S", email="s@example.com", availability=("Mon_09",))]
    request = RequestCompiler().compile(make_roster(teachers=teachers, students=students)).request

    assert request.time_slots == ["Mon_09", "Tue_10"]
    assert request.faculty[0].available_slots == ["Tue_10"]
    assert request.faculty[0].max_hours_per_week == 12
    assert request.faculty[1].available_slots == ["Mon_09", "Tue_10"]
    assert request.faculty[1].max_hours_per_week == 20


def test_compile_rooms_use_admin_capacities():
    roster = make_roster(class_capacity=90, lab_capacity=None)
    rooms = {room.room_id: room for room in RequestCompiler().compile(roster).request.rooms}
    assert rooms["R101"].type == "theory"
    assert rooms["R101"].capacity == 90
    assert rooms["LAB1"].type == "lab"
    assert rooms["LAB1"].capacity == 32


def test_compile_skips_duplicate_course_codes():
    courses = [
        CourseRecord(id="c1", code="cs101", name="Intro"),
        CourseRecord(id="c2", code="CS101", name="Intro again"),
    ]
    request = RequestCompiler().compile(make_roster(courses=courses)).request
    assert [course.course_code for course in request.courses] == ["CS101"]
    assert request.courses[0].name == "Intro"
