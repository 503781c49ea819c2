"""
Course and material API endpoints
Materials are registered with their extracted text; sections are cut on first use
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from database import schemas, crud
from database.database import get_db

router = APIRouter(tags=["courses"])


@router.post("/courses", response_model=schemas.CourseResponse, status_code=status.HTTP_201_CREATED)
def create_course(course: schemas.CourseCreate, db: Session = Depends(get_db)):
    """
    Create a new course
    Course codes must be unique
    """
    if crud.get_course_by_code(db, course.code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Course with code '{course.code}' already exists"
        )
    return crud.create_course(db, course)


@router.get("/courses", response_model=List[schemas.CourseResponse])
def list_courses(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """List all courses with pagination"""
    return crud.get_courses(db, skip=skip, limit=limit)


@router.get("/courses/{course_id}", response_model=schemas.CourseResponse)
def get_course(course_id: int, db: Session = Depends(get_db)):
    course = crud.get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail=f"Course {course_id} not found")
    return course


@router.get("/courses/{course_id}/materials", response_model=List[schemas.MaterialResponse])
def list_course_materials(course_id: int, db: Session = Depends(get_db)):
    """List a course's materials ordered by unit"""
    if not crud.get_course(db, course_id):
        raise HTTPException(status_code=404, detail=f"Course {course_id} not found")
    return crud.get_materials_by_course(db, course_id)


@router.post("/materials", response_model=schemas.MaterialResponse, status_code=status.HTTP_201_CREATED)
def register_material(material: schemas.MaterialCreate, db: Session = Depends(get_db)):
    """
    Register course material text for a course unit
    Sections are extracted and cached by the first generation job that uses it
    """
    if not crud.get_course(db, material.course_id):
        raise HTTPException(status_code=404, detail=f"Course {material.course_id} not found")
    return crud.create_material(db, material)


@router.get("/materials/{material_id}", response_model=schemas.MaterialResponse)
def get_material(material_id: int, db: Session = Depends(get_db)):
    material = crud.get_material(db, material_id)
    if not material:
        raise HTTPException(status_code=404, detail=f"Material {material_id} not found")
    return material
