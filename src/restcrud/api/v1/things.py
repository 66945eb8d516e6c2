"""
Things API Router

REST endpoints for the sample Thing resource, generated by CrudController.
"""

from restcrud.api.controller import CrudController
from restcrud.core.database import new_session
from restcrud.models import Thing
from restcrud.repositories.base import CrudRepository
from restcrud.schemas.things import ThingWebModel

thing_repository: CrudRepository[Thing, ThingWebModel, int] = CrudRepository(
    Thing,
    ThingWebModel,
    new_session,
)

controller = CrudController(thing_repository, key_type=int)
router = controller.router
