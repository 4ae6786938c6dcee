from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, require_roles
from app.models.course import Course
from app.models.user import User, UserRole
from app.schemas.course import CourseCreate, CourseOut
from app.services.audit import log_activity

router = APIRouter()


@router.get("/", response_model=list[CourseOut])
def list_courses(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[CourseOut]:
    return list(db.execute(select(Course).order_by(Course.created_at.asc(), Course.code.asc())).scalars())


@router.post("/", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    db: Session = Depends(get_db),
) -> CourseOut:
    existing = db.execute(select(Course).where(Course.code == payload.code)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Course code already exists")
    course = Course(**payload.model_dump())
    db.add(course)
    db.flush()
    log_activity(
        db,
        actor=current_user,
        action="course.create",
        entity_type="course",
        entity_id=course.id,
        details={"code": course.code},
    )
    db.commit()
    db.refresh(course)
    return course
