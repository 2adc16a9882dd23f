import dataclasses

import pytest

from use_cases.session_models import AuthUser, Profile, Role, Snapshot, is_student, is_teacher


def test_role_parse() -> None:
    assert Role.parse("student") is Role.STUDENT
    assert Role.parse("TEACHER") is Role.TEACHER
    assert Role.parse(Role.TEACHER) is Role.TEACHER
    with pytest.raises(ValueError):
        Role.parse("admin")
    with pytest.raises(ValueError):
        Role.parse(None)


def test_is_student_and_is_teacher() -> None:
    student = Profile(id="1", name="Stu", role=Role.STUDENT, attributes={"class": "8"})
    teacher = Profile(id="2", name="Tea", role=Role.TEACHER, attributes={"subject": "Art"})
    assert is_student(student) is True
    assert is_student(teacher) is False
    assert is_teacher(teacher) is True
    assert is_teacher(None) is False
    assert student.school_class == "8"
    assert teacher.subject == "Art"


def test_snapshot_defaults_and_immutability() -> None:
    snapshot = Snapshot()
    assert snapshot.loading is True
    assert snapshot.user is None
    assert snapshot.role is None
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.loading = False


def test_snapshot_role_follows_profile() -> None:
    snapshot = Snapshot(user=AuthUser("1"), profile=Profile(id="1", name="T", role=Role.TEACHER), loading=False)
    assert snapshot.role is Role.TEACHER
