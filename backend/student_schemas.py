from datetime import date
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

OPTIONAL_TEXT_FIELDS = (
    "rt",
    "rw",
    "dusun",
    "nik_ayah",
    "pekerjaan_ayah",
    "nik_ibu",
    "pekerjaan_ibu",
    "keterangan",
    "no_wa",
)
OPTIONAL_INT_FIELDS = ("anak_ke", "jumlah_saudara")
OPTIONAL_FIELDS = OPTIONAL_TEXT_FIELDS + OPTIONAL_INT_FIELDS


def blank_to_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class StudentFieldsMixin(CamelModel):
    @field_validator(*OPTIONAL_FIELDS, mode="before", check_fields=False)
    @classmethod
    def _normalize_optional(cls, value: Any) -> Any:
        return blank_to_none(value)

    @field_validator(*OPTIONAL_INT_FIELDS, mode="after", check_fields=False)
    @classmethod
    def _zero_count_to_none(cls, value: Optional[int]) -> Optional[int]:
        # a zero count is stored as "not given"
        return value or None

    @field_validator("jenis_kelamin", mode="before", check_fields=False)
    @classmethod
    def _normalize_sex(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class StudentBase(StudentFieldsMixin):
    nama: str = Field(min_length=1)
    nik: str = Field(min_length=1)
    no_kk: str = Field(min_length=1)
    jenis_kelamin: Literal["L", "P"]
    tempat_lahir: str = Field(min_length=1)
    tanggal_lahir: date
    agama: str = Field(min_length=1)
    kewarganegaraan: str = Field(min_length=1)
    anak_ke: Optional[int] = Field(default=None, ge=0)
    jumlah_saudara: Optional[int] = Field(default=None, ge=0)
    alamat: str = Field(min_length=1)
    rt: Optional[str] = None
    rw: Optional[str] = None
    desa: str = Field(min_length=1)
    dusun: Optional[str] = None
    kecamatan: str = Field(min_length=1)
    kabupaten: str = Field(min_length=1)
    provinsi: str = Field(min_length=1)
    nama_ayah: str = Field(min_length=1)
    nik_ayah: Optional[str] = None
    pekerjaan_ayah: Optional[str] = None
    nama_ibu: str = Field(min_length=1)
    nik_ibu: Optional[str] = None
    pekerjaan_ibu: Optional[str] = None
    kelas: str = Field(min_length=1)
    keterangan: Optional[str] = None
    no_wa: Optional[str] = None
    tanggal_masuk: date


class StudentCreate(StudentBase):
    """Payload accepted by manual creation and by every imported row."""


class StudentRecord(StudentBase):
    id: int
    no_urut: int
    no_reg: str
    nis: str
    umur: int


class StudentUpdate(StudentFieldsMixin):
    nama: Optional[str] = Field(default=None, min_length=1)
    nik: Optional[str] = Field(default=None, min_length=1)
    no_kk: Optional[str] = Field(default=None, min_length=1)
    jenis_kelamin: Optional[Literal["L", "P"]] = None
    tempat_lahir: Optional[str] = Field(default=None, min_length=1)
    tanggal_lahir: Optional[date] = None
    agama: Optional[str] = Field(default=None, min_length=1)
    kewarganegaraan: Optional[str] = Field(default=None, min_length=1)
    anak_ke: Optional[int] = Field(default=None, ge=0)
    jumlah_saudara: Optional[int] = Field(default=None, ge=0)
    alamat: Optional[str] = Field(default=None, min_length=1)
    rt: Optional[str] = None
    rw: Optional[str] = None
    desa: Optional[str] = Field(default=None, min_length=1)
    dusun: Optional[str] = None
    kecamatan: Optional[str] = Field(default=None, min_length=1)
    kabupaten: Optional[str] = Field(default=None, min_length=1)
    provinsi: Optional[str] = Field(default=None, min_length=1)
    nama_ayah: Optional[str] = Field(default=None, min_length=1)
    nik_ayah: Optional[str] = None
    pekerjaan_ayah: Optional[str] = None
    nama_ibu: Optional[str] = Field(default=None, min_length=1)
    nik_ibu: Optional[str] = None
    pekerjaan_ibu: Optional[str] = None
    kelas: Optional[str] = Field(default=None, min_length=1)
    keterangan: Optional[str] = None
    no_wa: Optional[str] = None
    tanggal_masuk: Optional[date] = None


class ClassCount(CamelModel):
    kelas: str
    count: int


class AgeRangeCount(CamelModel):
    age_range: str
    count: int


class StudentStats(CamelModel):
    total_students: int
    male_students: int
    female_students: int
    average_age: float
    students_by_class: List[ClassCount]
    age_distribution: List[AgeRangeCount]


class ImportResult(CamelModel):
    success: bool = True
    imported: int
    errors: List[str]
    message: str


STUDENT_INPUT_FIELDS = tuple(StudentCreate.model_fields.keys())
