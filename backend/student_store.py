import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, List, Optional, Tuple

from student_schemas import (
    OPTIONAL_FIELDS,
    AgeRangeCount,
    ClassCount,
    StudentCreate,
    StudentRecord,
    StudentStats,
    StudentUpdate,
)

logger = logging.getLogger(__name__)

# (min, max) inclusive; max None means unbounded
AGE_RANGES: Dict[str, Tuple[int, Optional[int]]] = {
    "12-15": (12, 15),
    "16-18": (16, 18),
    "19+": (19, None),
}
AGE_RANGE_SUFFIX = " tahun"


def calculate_age(birth_date: date, today: date) -> int:
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def age_in_range(age: int, age_range: str) -> bool:
    bounds = AGE_RANGES.get(age_range)
    if bounds is None:
        # Unknown buckets do not narrow the result.
        return True
    low, high = bounds
    return age >= low and (high is None or age <= high)


def format_sequence(no_urut: int, year: int) -> Tuple[str, str]:
    padded = f"{no_urut:03d}"
    return f"REG-{year}-{padded}", f"{year}{padded}"


@dataclass(frozen=True)
class StudentFilters:
    kelas: Optional[str] = None
    desa: Optional[str] = None
    age_range: Optional[str] = None
    jenis_kelamin: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.kelas or self.desa or self.age_range or self.jenis_kelamin)

    def matches(self, student: StudentRecord) -> bool:
        if self.kelas and student.kelas != self.kelas:
            return False
        if self.desa and student.desa != self.desa:
            return False
        if self.jenis_kelamin and student.jenis_kelamin != self.jenis_kelamin:
            return False
        if self.age_range and not age_in_range(student.umur, self.age_range):
            return False
        return True


class StudentStore:
    """In-memory student records keyed by id.

    Ids and sequence numbers only ever grow, so deleting a record leaves a
    gap rather than freeing its number. ``today`` supplies the current date
    for age and registration-year derivation.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._students: Dict[int, StudentRecord] = {}
        self._next_id = 1
        self._next_sequence = 1
        self._today = today

    def __len__(self) -> int:
        return len(self._students)

    def next_sequence(self) -> Tuple[int, str, str]:
        no_urut = self._next_sequence
        self._next_sequence += 1
        no_reg, nis = format_sequence(no_urut, self._today().year)
        return no_urut, no_reg, nis

    def get(self, student_id: int) -> Optional[StudentRecord]:
        return self._students.get(student_id)

    def list(self) -> List[StudentRecord]:
        return sorted(self._students.values(), key=lambda s: s.no_urut)

    def create(self, payload: StudentCreate) -> StudentRecord:
        no_urut, no_reg, nis = self.next_sequence()
        student_id = self._next_id
        self._next_id += 1
        student = StudentRecord(
            **payload.model_dump(),
            id=student_id,
            no_urut=no_urut,
            no_reg=no_reg,
            nis=nis,
            umur=calculate_age(payload.tanggal_lahir, self._today()),
        )
        self._students[student_id] = student
        logger.info("Created student %s (%s)", student.nis, student.nama)
        return student

    def update(self, student_id: int, payload: StudentUpdate) -> Optional[StudentRecord]:
        student = self._students.get(student_id)
        if student is None:
            return None
        changes = {}
        for key, value in payload.model_dump(exclude_unset=True).items():
            # null on a required field means "leave as is"
            if value is None and key not in OPTIONAL_FIELDS:
                continue
            changes[key] = value
        if changes.get("tanggal_lahir") is not None:
            changes["umur"] = calculate_age(changes["tanggal_lahir"], self._today())
        updated = student.model_copy(update=changes)
        self._students[student_id] = updated
        logger.info("Updated student %s fields=%s", updated.nis, sorted(changes))
        return updated

    def delete(self, student_id: int) -> bool:
        student = self._students.pop(student_id, None)
        if student is None:
            return False
        logger.info("Deleted student %s", student.nis)
        return True

    def search(self, query: str) -> List[StudentRecord]:
        needle = query.lower()
        return [
            student
            for student in self.list()
            if needle in student.nama.lower()
            or needle in student.nis.lower()
            or needle in student.nik.lower()
            or needle in student.no_reg.lower()
        ]

    def filter(self, filters: StudentFilters) -> List[StudentRecord]:
        students = self.list()
        if filters.is_empty():
            return students
        return [student for student in students if filters.matches(student)]

    def stats(self) -> StudentStats:
        students = self.list()
        total = len(students)
        male = len([s for s in students if s.jenis_kelamin == "L"])
        female = len([s for s in students if s.jenis_kelamin == "P"])
        average_age = 0.0
        if total:
            mean = Decimal(sum(s.umur for s in students)) / Decimal(total)
            average_age = float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
        class_counts: Dict[str, int] = {}
        for student in students:
            class_counts[student.kelas] = class_counts.get(student.kelas, 0) + 1
        return StudentStats(
            total_students=total,
            male_students=male,
            female_students=female,
            average_age=average_age,
            students_by_class=[
                ClassCount(kelas=kelas, count=count) for kelas, count in class_counts.items()
            ],
            age_distribution=[
                AgeRangeCount(
                    age_range=f"{label}{AGE_RANGE_SUFFIX}",
                    count=len([s for s in students if age_in_range(s.umur, label)]),
                )
                for label in AGE_RANGES
            ],
        )
