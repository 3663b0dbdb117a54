"""
Pytest configuration and shared fixtures for MDB_DATA tests.

This module provides:
- In-memory store fixtures
- Mock Motor collection fixtures
- Sample domain models (users, students/courses/ratings, parents/children)
- Repository factories
"""

from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from mdb_data.config import RepositoryConfig
from mdb_data.database.memory import InMemoryDatabase
from mdb_data.repositories import (
    Entity,
    MongoRepository,
    QueryMethod,
    RepositoryDefinition,
    many_to_many,
    many_to_one,
    one_to_many,
    required,
)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without a MongoDB server")


# ============================================================================
# SAMPLE DOMAIN
# ============================================================================


@dataclass
class User(Entity):
    __collection__ = "user"
    __visibility_flag__ = "enabled"

    name: str = required()
    enabled: bool = True


@dataclass
class Course(Entity):
    __collection__ = "course"

    name: str = required()


@dataclass
class Student(Entity):
    __collection__ = "student"

    name: str = required()
    courses: list = many_to_many(Course)
    ratings: list = one_to_many("CourseRating", mapped_by="student")


@dataclass
class CourseRating(Entity):
    __collection__ = "course_rating"

    student: Student = many_to_one(Student, is_required=True)
    course: Course = many_to_one(Course, is_required=True)
    rating: int = required()


@dataclass
class Child(Entity):
    __collection__ = "child"
    __where__ = {"archived": False}

    name: str = required()
    parent: Any = many_to_one("Parent")
    archived: bool = False


@dataclass
class Parent(Entity):
    __collection__ = "parent"

    name: str = required()
    children: list = one_to_many(Child, mapped_by="parent")


@pytest.fixture
def models() -> SimpleNamespace:
    """Sample entity classes."""
    return SimpleNamespace(
        User=User,
        Course=Course,
        Student=Student,
        CourseRating=CourseRating,
        Parent=Parent,
        Child=Child,
    )


# ============================================================================
# STORE FIXTURES
# ============================================================================


@pytest.fixture
def db() -> InMemoryDatabase:
    """Fresh in-memory store handle."""
    return InMemoryDatabase("test_db")


@pytest.fixture
def config() -> RepositoryConfig:
    """Configuration independent of the environment."""
    return RepositoryConfig(default_limit=100)


@pytest.fixture
def mock_collection() -> MagicMock:
    """Create a mock Motor collection."""
    collection = MagicMock()
    collection.name = "user"
    collection.find_one = AsyncMock(return_value=None)
    collection.find = MagicMock(return_value=MagicMock(to_list=AsyncMock(return_value=[])))
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.replace_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    collection.update_many = AsyncMock(return_value=MagicMock(modified_count=1))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))
    collection.count_documents = AsyncMock(return_value=0)
    return collection


@pytest.fixture
def mock_db(mock_collection: MagicMock) -> MagicMock:
    """Create a mock Motor database returning mock_collection for every name."""
    database = MagicMock()
    database.__getitem__.return_value = mock_collection
    return database


# ============================================================================
# REPOSITORY FIXTURES
# ============================================================================


@pytest.fixture
def user_definition() -> RepositoryDefinition:
    """User repository: soft delete plus a raw finder for disabled users."""
    return RepositoryDefinition(
        User,
        methods={
            "find_disabled": QueryMethod(query={"enabled": False}, raw=True),
            "find_by_name": QueryMethod(
                action="find_one", query={"name": ":name"}, params=("name",)
            ),
        },
    )


@pytest.fixture
def user_repository(db, user_definition, config) -> MongoRepository:
    return MongoRepository(db, user_definition, config=config)


@pytest.fixture
def student_definition() -> RepositoryDefinition:
    """Student repository: find_by_id joins courses, query_by_id joins everything."""
    return RepositoryDefinition(
        Student,
        methods={
            "find_by_id": QueryMethod(joins=("courses",)),
            "query_by_id": QueryMethod(
                action="find_one",
                query={"_id": ":id"},
                params=("id",),
                joins=("courses", "ratings", "ratings.course", "ratings.student"),
            ),
        },
    )


@pytest.fixture
def student_repository(db, student_definition, config) -> MongoRepository:
    return MongoRepository(db, student_definition, config=config)


@pytest.fixture
def course_repository(db, config) -> MongoRepository:
    return MongoRepository(db, Course, config=config)


@pytest.fixture
def rating_repository(db, config) -> MongoRepository:
    return MongoRepository(db, CourseRating, config=config)


@pytest.fixture
def parent_repository(db, config) -> MongoRepository:
    return MongoRepository(
        db,
        RepositoryDefinition(Parent, methods={"find_by_id": QueryMethod(joins=("children",))}),
        config=config,
    )


@pytest.fixture
def child_repository(db, config) -> MongoRepository:
    return MongoRepository(db, Child, config=config)
