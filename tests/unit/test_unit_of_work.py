"""
Unit tests for UnitOfWork.
"""

import pytest

from mdb_data.exceptions import ConfigurationError
from mdb_data.repositories import MongoRepository, RepositoryDefinition, UnitOfWork


class TestUnitOfWork:
    def test_attribute_access_by_collection(self, db, user_definition, config):
        uow = UnitOfWork(db, [user_definition], config=config)

        repo = uow.user
        assert isinstance(repo, MongoRepository)
        assert repo.definition is user_definition
        assert uow.user is repo

    def test_repository_by_entity_registers_default(self, db, models, config):
        uow = UnitOfWork(db, config=config)

        repo = uow.repository(models.Course)
        assert repo.entity_class is models.Course
        assert uow.repository("course") is repo

    def test_registered_definition_wins_over_default(self, db, student_definition, models):
        uow = UnitOfWork(db, [student_definition])

        assert uow.repository(models.Student).definition is student_definition

    def test_duplicate_registration(self, db, user_definition, models):
        uow = UnitOfWork(db, [user_definition])

        with pytest.raises(ConfigurationError, match="already has a repository definition"):
            uow.register(RepositoryDefinition(models.User))

    def test_unknown_collection(self, db):
        uow = UnitOfWork(db)

        with pytest.raises(ConfigurationError):
            uow.repository("missing")
        with pytest.raises(AttributeError):
            uow.missing

    def test_private_attribute(self, db):
        with pytest.raises(AttributeError):
            UnitOfWork(db)._private

    def test_dispose_keeps_definitions(self, db, user_definition):
        uow = UnitOfWork(db, [user_definition])
        first = uow.user

        uow.dispose()

        assert uow.user is not first
        assert uow.db is db

    @pytest.mark.asyncio
    async def test_repositories_share_store(self, db, models, config):
        uow = UnitOfWork(db, config=config)
        math = await uow.repository(models.Course).save(models.Course(name="Math"))

        assert await db["course"].count_documents({"_id": math.id}) == 1
