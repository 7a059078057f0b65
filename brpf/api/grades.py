"""Military grades offered when recording a demandeur."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from brpf import serializers
from brpf.audit import log_action
from brpf.errors import ConflictError, NotFoundError
from brpf.models import Demande, Grade, User, get_db
from brpf.ordering import ReorderRequest, next_ordre, reorder
from brpf.security import get_current_user, require_admin

router = APIRouter(prefix="/api/grades", tags=["grades"])


class GradeRequest(BaseModel):
    grade_complet: str = Field(..., min_length=1)
    grade_abrege: str = Field(..., min_length=1)


def _get_grade(db: Session, grade_id: str) -> Grade:
    grade = db.get(Grade, grade_id)
    if grade is None:
        raise NotFoundError("Grade introuvable")
    return grade


@router.get("")
def list_grades(db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> list:
    grades = db.query(Grade).order_by(Grade.ordre).all()
    log_action(db, user.id, "LIST_GRADES", f"Consultation des grades ({len(grades)} résultats)")
    return [serializers.columns(grade) for grade in grades]


@router.get("/options")
def list_options(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> list:
    return [
        {"id": grade.id, "ordre": grade.ordre, "grade_complet": grade.grade_complet, "grade_abrege": grade.grade_abrege}
        for grade in db.query(Grade).order_by(Grade.ordre).all()
    ]


@router.get("/stats")
def grade_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)) -> dict:
    return {"total_grades": db.query(func.count(Grade.id)).scalar() or 0}


@router.put("/reorder")
def reorder_grades(payload: ReorderRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    reorder(db, Grade, payload.items)
    log_action(db, admin.id, "REORDER_GRADES", f"{len(payload.items)} grades réordonnés", "Grade")
    return {"message": "Ordres mis à jour avec succès"}


@router.post("", status_code=201)
def create_grade(payload: GradeRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    if db.query(Grade).filter(Grade.grade_complet == payload.grade_complet).first():
        raise ConflictError("Ce grade existe déjà")
    grade = Grade(ordre=next_ordre(db, Grade), **payload.model_dump())
    db.add(grade)
    db.commit()
    log_action(db, admin.id, "CREATE_GRADE", f"Création grade {grade.grade_complet}", "Grade", grade.id)
    return serializers.columns(grade)


@router.put("/{grade_id}")
def update_grade(
    grade_id: str,
    payload: GradeRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    grade = _get_grade(db, grade_id)
    if db.query(Grade).filter(Grade.grade_complet == payload.grade_complet, Grade.id != grade.id).first():
        raise ConflictError("Ce grade existe déjà")
    grade.grade_complet = payload.grade_complet
    grade.grade_abrege = payload.grade_abrege
    db.commit()
    log_action(db, admin.id, "UPDATE_GRADE", f"Modification grade {grade.grade_complet}", "Grade", grade.id)
    return serializers.columns(grade)


@router.delete("/{grade_id}")
def delete_grade(grade_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)) -> dict:
    grade = _get_grade(db, grade_id)
    db.query(Demande).filter(Demande.grade_id == grade.id).update(
        {Demande.grade_id: None}, synchronize_session=False
    )
    db.delete(grade)
    db.commit()
    log_action(db, admin.id, "DELETE_GRADE", f"Suppression grade {grade.grade_complet}", "Grade", grade_id)
    return {"message": "Grade supprimé avec succès"}
