# Overview: Material catalog CRUD with soft delete.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError
from ..models import Material
from ..permissions import ADMIN_ONLY, STAFF_ONLY, Actor
from ..validation import ModelValidationPolicy, enforce_rules_material, validate_payload


MATERIAL_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "thickness_mm", "price_per_sqm", "cutting_speed_factor", "is_active"}),
    required_on_create=frozenset({"name", "thickness_mm", "price_per_sqm"}),
)


def _require_admin(actor: Actor) -> None:
    if not ADMIN_ONLY[actor.role]:
        raise AuthorizationError("Only admins can manage materials")


def list_materials(actor: Actor, include_inactive: bool = False) -> list[Material]:
    if not STAFF_ONLY[actor.role]:
        raise AuthorizationError("Only staff can view the material catalog")
    query = db.session.query(Material)
    if not include_inactive:
        query = query.filter(Material.is_active.is_(True))
    return query.order_by(Material.name.asc(), Material.thickness_mm.asc()).all()


def get_material(material_id: int) -> Material:
    material = db.session.query(Material).filter_by(id=material_id).first()
    if not material:
        raise NotFoundError(f"Material {material_id} not found")
    return material


def _commit_unique(material: Material) -> Material:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise StateConflictError(f"Material '{material.name}' already exists")
    return material


def create_material(actor: Actor, payload: dict) -> Material:
    _require_admin(actor)
    patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_POLICY, partial=False)
    enforce_rules_material(patch)

    patch.setdefault("cutting_speed_factor", 1)
    material = Material(**patch)
    db.session.add(material)
    return _commit_unique(material)


def update_material(actor: Actor, material_id: int, payload: dict) -> Material:
    _require_admin(actor)
    material = get_material(material_id)
    patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_POLICY, partial=True)
    enforce_rules_material(patch)

    for k, v in patch.items():
        setattr(material, k, v)
    return _commit_unique(material)


def deactivate_material(actor: Actor, material_id: int) -> Material:
    """Soft delete; line items already referencing the material keep it."""
    _require_admin(actor)
    material = get_material(material_id)
    material.is_active = False
    db.session.commit()
    return material
