#!/usr/bin/env python3
"""
School Example for MDB_DATA

Students take courses (many-to-many) and rate them (one-to-many through
CourseRating). The student repository is declared in manifest.json:
find_by_id loads courses only, query_by_id loads the full graph.
"""
import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mdb_data import (
    Entity,
    InMemoryDatabase,
    RepositoryDefinition,
    UnitOfWork,
    many_to_many,
    many_to_one,
    one_to_many,
    required,
)


@dataclass
class Course(Entity):
    name: str = required()


@dataclass
class Student(Entity):
    name: str = required()
    courses: list = many_to_many(Course)
    ratings: Any = one_to_many("CourseRating", mapped_by="student")


@dataclass
class CourseRating(Entity):
    student: Student = many_to_one(Student, is_required=True)
    course: Course = many_to_one(Course, is_required=True)
    rating: int = required()


async def main():
    """Main example function"""
    manifest = json.loads((Path(__file__).parent / "manifest.json").read_text())

    uow = UnitOfWork(InMemoryDatabase("school"), [RepositoryDefinition.from_manifest(manifest)])
    courses = uow.repository(Course)
    students = uow.repository(Student)
    ratings = uow.repository(CourseRating)

    print("📝 Enrolling students...")
    math, art, bio = await courses.save_all(
        [Course(name="Math"), Course(name="Art"), Course(name="Biology")]
    )
    ann = await students.save(Student(name="Ann", courses=[math, art]))
    await students.save(Student(name="Bob", courses=[bio]))
    await ratings.save_all(
        [
            CourseRating(student=ann, course=math, rating=5),
            CourseRating(student=ann, course=art, rating=3),
        ]
    )
    print(f"✅ {await students.count_in_course(math.id)} student(s) take {math.name}\n")

    # Only courses are loaded; ratings stay unloaded (None)
    student = await students.find_by_id(ann.id)
    print(f"🔍 {student.name}: courses={[c.name for c in student.courses]}")
    print(f"   ratings loaded: {student.ratings is not None}")

    # Full graph
    student = await students.query_by_id(ann.id)
    print(f"🔍 {student.name}: courses={[c.name for c in student.courses]}")
    for rating in student.ratings:
        print(f"   - {rating.course.name}: {rating.rating} (by {rating.student.name})")


if __name__ == "__main__":
    asyncio.run(main())
