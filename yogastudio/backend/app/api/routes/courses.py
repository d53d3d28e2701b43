from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from ...api import deps
from ...core.errors import unwrap
from ...db.session import get_db, transaction
from ...db import models, schemas
from ...services import availability_service, booking_service

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("", response_model=list[schemas.Course])
def list_courses(db: Session = Depends(get_db)):
    return (
        db.query(models.Course)
        .filter(models.Course.is_active.is_(True))
        .order_by(models.Course.title)
        .all()
    )


@router.get("/all", response_model=list[schemas.Course])
def list_all_courses(
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    return db.query(models.Course).order_by(models.Course.title).all()


@router.get("/{course_id}", response_model=schemas.Course)
def get_course(course_id: int, db: Session = Depends(get_db)):
    course = db.get(models.Course, course_id)
    if not course or not course.is_active:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


@router.get("/{course_id}/availability", response_model=schemas.Availability)
def course_availability(
    course_id: int,
    slot_at: str = Query(..., description="ISO 8601 start time of the session"),
    db: Session = Depends(get_db),
):
    return unwrap(availability_service.check_availability(db, course_id, slot_at))


@router.post("", response_model=schemas.Course, status_code=201)
def create_course(
    payload: schemas.CourseCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    if db.query(models.Course).filter_by(title=payload.title).first():
        raise HTTPException(status_code=409, detail="A course with this title already exists")
    course = models.Course(**payload.model_dump())
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


@router.patch("/{course_id}", response_model=schemas.Course)
def update_course(
    course_id: int,
    payload: schemas.CourseUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    updates = payload.model_dump(exclude_unset=True)
    capacity = updates.pop("capacity", None)
    try:
        with transaction(db):
            # confirmations queue behind this lock, so the recount below is final
            course = booking_service.lock_course(db, course_id)
            if not course:
                raise HTTPException(status_code=404, detail="Course not found")
            if capacity is not None:
                booking_service.resize_course(db, course, capacity)
            for key, value in updates.items():
                setattr(course, key, value)
    except booking_service.BookingError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    db.refresh(course)
    return course


@router.delete("/{course_id}")
def delete_course(
    course_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.require_roles("ADMIN")),
):
    course = db.get(models.Course, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if db.query(models.Booking).filter_by(course_id=course.id).first():
        raise HTTPException(
            status_code=409, detail="Course has bookings; deactivate it instead"
        )
    db.delete(course)
    db.commit()
    return {"status": "deleted"}
