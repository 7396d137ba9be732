from fastapi import FastAPI, APIRouter, UploadFile, File, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.middleware.cors import CORSMiddleware
import io
import logging
import uvicorn
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from app_config import Settings
from sample_students import seed_sample_students
from student_documents import (
    EXPORT_FILENAME,
    PDF_MEDIA_TYPE,
    TEMPLATE_FILENAME,
    XLSX_MEDIA_TYPE,
    generate_import_template,
    generate_stats_excel,
    generate_stats_pdf,
    generate_student_pdf,
    generate_students_excel,
    read_student_rows,
    student_pdf_filename,
)
from student_schemas import (
    ImportResult,
    StudentCreate,
    StudentRecord,
    StudentStats,
    StudentUpdate,
)
from student_store import StudentFilters, StudentStore

# Setup logging early
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api")


def describe_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    described = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if loc and loc[0] == "body":
            loc = loc[1:]
        described.append({"field": ".".join(loc), "message": error.get("msg", "Invalid value")})
    return described


def get_store(request: Request) -> StudentStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def parse_student_id(raw: str) -> int:
    # ids are integers; anything else cannot name a student
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=404, detail="Student not found")


def require_student(store: StudentStore, raw_id: str) -> StudentRecord:
    student = store.get(parse_student_id(raw_id))
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


def upload_too_large(settings: Settings) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File exceeds the {settings.max_upload_mb} MB upload limit",
    )


def attachment(content: bytes, filename: str, media_type: str) -> StreamingResponse:
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(io.BytesIO(content), media_type=media_type, headers=headers)


@api_router.get("/")
async def root():
    return {"message": "Santri Records API is running"}


@api_router.get("/students", response_model=List[StudentRecord])
async def get_students(
    request: Request,
    search: Optional[str] = Query(default=None),
    kelas: Optional[str] = Query(default=None),
    desa: Optional[str] = Query(default=None),
    age_range: Optional[str] = Query(default=None, alias="ageRange"),
    jenis_kelamin: Optional[str] = Query(default=None, alias="jenisKelamin"),
):
    store = get_store(request)
    if search:
        return store.search(search)
    filters = StudentFilters(
        kelas=kelas or None,
        desa=desa or None,
        age_range=age_range or None,
        jenis_kelamin=jenis_kelamin or None,
    )
    return store.filter(filters)


@api_router.get("/students/export/excel")
async def export_students_excel(request: Request):
    try:
        content = generate_students_excel(get_store(request).list())
    except Exception as e:
        logger.exception("Student export failed")
        raise HTTPException(status_code=500, detail=f"Failed to export data: {str(e)}")
    return attachment(content, EXPORT_FILENAME, XLSX_MEDIA_TYPE)


@api_router.get("/students/import-template")
async def download_import_template():
    """Header-only workbook in the column layout the importer reads."""
    return attachment(generate_import_template(), TEMPLATE_FILENAME, XLSX_MEDIA_TYPE)


@api_router.post("/students/import/excel", response_model=ImportResult)
async def import_students_excel(request: Request, file: Optional[UploadFile] = File(default=None)):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    settings = get_settings(request)
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise upload_too_large(settings)
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(content) > settings.max_upload_bytes:
        raise upload_too_large(settings)
    try:
        rows = read_student_rows(content)
    except Exception as e:
        logger.exception("Could not read uploaded workbook %s", file.filename)
        raise HTTPException(status_code=500, detail=f"Failed to import data: {str(e)}")

    store = get_store(request)
    imported = 0
    errors: List[str] = []
    for row_number, payload in rows:
        try:
            student_payload = StudentCreate.model_validate(payload)
        except ValidationError as exc:
            messages = ", ".join(
                f"{item['field']}: {item['message']}" for item in describe_validation_errors(exc.errors())
            )
            errors.append(f"Row {row_number}: {messages}")
            logger.warning("Skipped import row %d: %s", row_number, messages)
            continue
        store.create(student_payload)
        imported += 1

    message = f"Successfully imported {imported} students"
    if errors:
        message += f" with {len(errors)} errors"
    logger.info("Import of %s finished: %d imported, %d errors", file.filename, imported, len(errors))
    return ImportResult(success=True, imported=imported, errors=errors, message=message)


@api_router.get("/students/{student_id}", response_model=StudentRecord)
async def get_student(student_id: str, request: Request):
    return require_student(get_store(request), student_id)


@api_router.post("/students", response_model=StudentRecord, status_code=status.HTTP_201_CREATED)
async def create_student(payload: StudentCreate, request: Request):
    return get_store(request).create(payload)


@api_router.put("/students/{student_id}", response_model=StudentRecord)
async def update_student(student_id: str, request: Request, payload: Optional[StudentUpdate] = None):
    student = get_store(request).update(parse_student_id(student_id), payload or StudentUpdate())
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


@api_router.delete("/students/{student_id}")
async def delete_student(student_id: str, request: Request):
    if not get_store(request).delete(parse_student_id(student_id)):
        raise HTTPException(status_code=404, detail="Student not found")
    return {"message": "Student deleted successfully"}


@api_router.get("/students/{student_id}/pdf")
async def export_student_pdf(student_id: str, request: Request):
    student = require_student(get_store(request), student_id)
    try:
        content = generate_student_pdf(student)
    except Exception as e:
        logger.exception("PDF generation failed for student %s", student.nis)
        raise HTTPException(status_code=500, detail=f"Failed to generate PDF: {str(e)}")
    return attachment(content, student_pdf_filename(student), PDF_MEDIA_TYPE)


@api_router.get("/dashboard/stats", response_model=StudentStats)
async def get_dashboard_stats(request: Request):
    try:
        return get_store(request).stats()
    except Exception as e:
        logger.exception("Dashboard statistics failed")
        raise HTTPException(status_code=500, detail=f"Failed to fetch statistics: {str(e)}")


@api_router.get("/dashboard/stats/export")
async def export_dashboard_stats(request: Request, format: str = Query("pdf")):
    if format not in ("pdf", "excel"):
        raise HTTPException(status_code=400, detail="format must be 'pdf' or 'excel'")
    stats = get_store(request).stats()
    try:
        if format == "excel":
            content = generate_stats_excel(stats)
            filename = "statistik-santri.xlsx"
            media_type = XLSX_MEDIA_TYPE
        else:
            content = generate_stats_pdf(stats, get_settings(request).now())
            filename = "statistik-santri.pdf"
            media_type = PDF_MEDIA_TYPE
    except Exception as e:
        logger.exception("Statistics export failed")
        raise HTTPException(status_code=500, detail=f"Failed to export statistics: {str(e)}")
    return attachment(content, filename, media_type)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation error", "errors": describe_validation_errors(exc.errors())},
    )


def create_app(settings: Optional[Settings] = None, store: Optional[StudentStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    app = FastAPI(title="Santri Records API")
    app.state.settings = settings
    app.state.store = store if store is not None else StudentStore(today=settings.today)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.on_event("startup")
    async def seed_defaults():
        if not settings.seed_sample_data:
            return
        try:
            seed_sample_students(app.state.store)
        except Exception as e:
            logger.error(f"Error during sample data seeding: {e}")
            logger.warning("Continuing without sample data.")

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(api_router)
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    return app


app = create_app()


if __name__ == "__main__":
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
