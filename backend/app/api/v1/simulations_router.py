# backend/app/api/v1/simulations_router.py

"""
API v1 - SIMULACIONES DE PRESUPUESTO y PLANTILLAS DE SUBGRUPOS

Una simulación es un presupuesto hipotético: ingresos, montos por
categoría (efectivo / crédito / ahorros) y subgrupos de categorías para
visualizarlo. No toca saldos de fondos.

Endpoints (/api/simulations):
- GET|POST                /
- GET|PUT|DELETE          /{id}
- POST                    /{id}/copy
- GET|POST                /{id}/incomes
- PUT|DELETE              /{id}/incomes/{income_id}
- GET|PUT                 /{id}/budgets
- POST                    /{id}/copy-from-period
- GET                     /{id}/analytics
- GET                     /{id}/export?format=csv|xlsx
- GET|POST                /{id}/subgroups
- PUT|DELETE              /{id}/subgroups/{subgroup_id}
- POST                    /{id}/save-as-template
- POST                    /{id}/apply-template
- GET|DELETE              /{id}/applied-template

Endpoints (/api/subgroup-templates): CRUD.
"""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.api.v1.auth_router import require_user
from backend.app.db import models
from backend.app.db.custom_types import to_money
from backend.app.db.session import get_db
from backend.app.schemas.simulations import (
    ApplyTemplateIn,
    CopyFromPeriodIn,
    SaveAsTemplateIn,
    SimulationBudgetOut,
    SimulationBudgetsUpdate,
    SimulationCopyIn,
    SimulationCreate,
    SimulationIncomeCreate,
    SimulationIncomeOut,
    SimulationIncomeUpdate,
    SimulationOut,
    SimulationUpdate,
    SubgroupCreate,
    SubgroupOut,
    SubgroupUpdate,
    TemplateCreate,
    TemplateOut,
    TemplateSubgroupIn,
    TemplateUpdate,
)
from backend.app.utils.db_errors import raise_db_error
from backend.app.utils.export_utils import Column, export_response
from backend.app.utils.id_utils import parse_id_list, parse_positive_int
from backend.app.utils.simulation_utils import (
    SIM_CREDITO,
    SIM_EFECTIVO,
    SIM_PAYMENT_METHODS,
    budget_row,
    budgets_from_period,
    grouper_comparison,
    simulation_summary,
    subgroup_totals,
)
from backend.app.utils.text_utils import normalize_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/simulations", tags=["simulations"])
templates_router = APIRouter(prefix="/subgroup-templates", tags=["simulations"])

SIMULATION_NOT_FOUND = "Simulación no encontrada"
TEMPLATE_NOT_FOUND = "Plantilla no encontrada"
SUBGROUP_NOT_FOUND = "Subgrupo no encontrado"


# ============================================================
# Helpers internos
# ============================================================

def _get_simulation_or_404(db: Session, simulation_id: str) -> models.Simulation:
    obj = db.get(models.Simulation, simulation_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=SIMULATION_NOT_FOUND)
    return obj


def _get_template_or_404(db: Session, template_id: str) -> models.SubgroupTemplate:
    obj = db.get(models.SubgroupTemplate, template_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TEMPLATE_NOT_FOUND)
    return obj


def _commit(db: Session, context: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        raise_db_error(db, exc, context)


def _check_categories(db: Session, category_ids: List[str]) -> List[str]:
    """
    Quita duplicados conservando el orden y exige que todas existan.
    """
    unique = list(dict.fromkeys(category_ids))
    if not unique:
        return unique
    found = {cid for (cid,) in db.query(models.Category.id).filter(models.Category.id.in_(unique)).all()}
    missing = [cid for cid in unique if cid not in found]
    if missing:
        raise HTTPException(status_code=400, detail=f"Categorías no encontradas: {', '.join(missing)}")
    return unique


def _next_order(items) -> int:
    return max((i.display_order for i in items), default=-1) + 1


def _check_template_name(db: Session, name: str, exclude_id: Optional[str] = None) -> None:
    q = db.query(models.SubgroupTemplate).filter(func.lower(models.SubgroupTemplate.name) == name.lower())
    if exclude_id:
        q = q.filter(models.SubgroupTemplate.id != exclude_id)
    if q.first():
        raise HTTPException(status_code=409, detail=f"Ya existe una plantilla con el nombre '{name}'")


def _template_subgroups(db: Session, items: List[TemplateSubgroupIn]) -> List[models.TemplateSubgroup]:
    out = []
    for idx, item in enumerate(items):
        out.append(
            models.TemplateSubgroup(
                name=item.name.strip(),
                display_order=item.display_order if item.display_order is not None else idx,
                category_ids=_check_categories(db, item.category_ids),
            )
        )
    return out


def _applied_template(simulation: models.Simulation) -> Optional[models.SubgroupTemplate]:
    """
    La plantilla aplicada se deduce de los subgrupos enlazados a ella.
    """
    for sg in simulation.subgroups:
        if sg.template_subgroup is not None:
            return sg.template_subgroup.template
    return None


def _unlink_template_subgroups(db: Session, template_subgroup_ids: List[str]) -> None:
    if not template_subgroup_ids:
        return
    db.query(models.SimulationSubgroup).filter(
        models.SimulationSubgroup.template_subgroup_id.in_(template_subgroup_ids)
    ).update({models.SimulationSubgroup.template_subgroup_id: None}, synchronize_session=False)


# ============================================================
# Simulaciones
# ============================================================

@router.get("", response_model=List[SimulationOut])
def list_simulations(db: Session = Depends(get_db), user=Depends(require_user)):
    return db.query(models.Simulation).order_by(models.Simulation.updated_at.desc()).all()


@router.get("/{simulation_id}", response_model=SimulationOut)
def get_simulation(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_simulation_or_404(db, simulation_id)


@router.post("", response_model=SimulationOut, status_code=status.HTTP_201_CREATED)
def create_simulation(payload: SimulationCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = models.Simulation(name=payload.name.strip(), description=payload.description)
    db.add(obj)
    _commit(db, "[simulations] crear")
    db.refresh(obj)
    logger.info("[simulations] creada id=%s", obj.id)
    return obj


@router.put("/{simulation_id}", response_model=SimulationOut)
def update_simulation(
    simulation_id: str,
    payload: SimulationUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_simulation_or_404(db, simulation_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if data.get("name") is not None:
        obj.name = data["name"].strip()
    if "description" in data:
        obj.description = data["description"]
    _commit(db, "[simulations] actualizar")
    db.refresh(obj)
    return obj


@router.delete("/{simulation_id}")
def delete_simulation(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    obj = _get_simulation_or_404(db, simulation_id)
    db.delete(obj)
    _commit(db, "[simulations] eliminar")
    return {"success": True, "message": "Simulación eliminada correctamente"}


@router.post("/{simulation_id}/copy", response_model=SimulationOut, status_code=status.HTTP_201_CREATED)
def copy_simulation(
    simulation_id: str,
    payload: SimulationCopyIn,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Copia ingresos, presupuestos y subgrupos. Sin nombre: "<original> (Copia)".
    """
    source = _get_simulation_or_404(db, simulation_id)
    copy = models.Simulation(
        name=normalize_name(payload.name) or f"{source.name} (Copia)",
        description=source.description,
    )
    copy.incomes = [models.SimulationIncome(description=i.description, amount=i.amount) for i in source.incomes]
    copy.budgets = [
        models.SimulationBudget(
            category_id=b.category_id,
            efectivo_amount=b.efectivo_amount,
            credito_amount=b.credito_amount,
            ahorro_efectivo_amount=b.ahorro_efectivo_amount,
            ahorro_credito_amount=b.ahorro_credito_amount,
            expected_savings=b.expected_savings,
        )
        for b in source.budgets
    ]
    copy.subgroups = [
        models.SimulationSubgroup(
            name=sg.name,
            display_order=sg.display_order,
            category_ids=list(sg.category_ids or []),
            template_subgroup_id=sg.template_subgroup_id,
        )
        for sg in source.subgroups
    ]
    db.add(copy)
    _commit(db, "[simulations] copiar")
    db.refresh(copy)
    logger.info("[simulations] copia %s -> %s", source.id, copy.id)
    return copy


# ============================================================
# Ingresos simulados
# ============================================================

def _get_income_or_404(db: Session, simulation: models.Simulation, income_id: str) -> models.SimulationIncome:
    obj = db.get(models.SimulationIncome, income_id)
    if not obj or obj.simulation_id != simulation.id:
        raise HTTPException(status_code=404, detail="Ingreso no encontrado")
    return obj


@router.get("/{simulation_id}/incomes", response_model=List[SimulationIncomeOut])
def list_simulation_incomes(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    sim = _get_simulation_or_404(db, simulation_id)
    return (
        db.query(models.SimulationIncome)
        .filter(models.SimulationIncome.simulation_id == sim.id)
        .order_by(models.SimulationIncome.created_at.asc())
        .all()
    )


@router.post("/{simulation_id}/incomes", response_model=SimulationIncomeOut, status_code=status.HTTP_201_CREATED)
def create_simulation_income(
    simulation_id: str,
    payload: SimulationIncomeCreate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    obj = models.SimulationIncome(
        simulation_id=sim.id,
        description=payload.description.strip(),
        amount=to_money(payload.amount),
    )
    db.add(obj)
    _commit(db, "[simulations] crear ingreso")
    db.refresh(obj)
    return obj


@router.put("/{simulation_id}/incomes/{income_id}", response_model=SimulationIncomeOut)
def update_simulation_income(
    simulation_id: str,
    income_id: str,
    payload: SimulationIncomeUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    obj = _get_income_or_404(db, sim, income_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if "description" in data:
        obj.description = data["description"].strip()
    if "amount" in data:
        obj.amount = to_money(data["amount"])
    _commit(db, "[simulations] actualizar ingreso")
    db.refresh(obj)
    return obj


@router.delete("/{simulation_id}/incomes/{income_id}")
def delete_simulation_income(
    simulation_id: str,
    income_id: str,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    obj = _get_income_or_404(db, sim, income_id)
    db.delete(obj)
    _commit(db, "[simulations] eliminar ingreso")
    return {"success": True, "message": "Ingreso eliminado correctamente"}


# ============================================================
# Presupuestos simulados
# ============================================================

@router.get("/{simulation_id}/budgets", response_model=List[SimulationBudgetOut])
def list_simulation_budgets(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    sim = _get_simulation_or_404(db, simulation_id)
    rows = [budget_row(b) for b in sim.budgets]
    return sorted(rows, key=lambda r: (r["category_name"] or "").lower())


@router.put("/{simulation_id}/budgets", response_model=List[SimulationBudgetOut])
def upsert_simulation_budgets(
    simulation_id: str,
    payload: SimulationBudgetsUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Upsert por categoría. Las categorías que no vienen en la lista se
    conservan tal cual.
    """
    sim = _get_simulation_or_404(db, simulation_id)
    category_ids = [b.category_id for b in payload.budgets]
    if len(set(category_ids)) != len(category_ids):
        raise HTTPException(status_code=400, detail="Categoría repetida en la lista de presupuestos")
    _check_categories(db, category_ids)

    existing = {b.category_id: b for b in sim.budgets}
    for item in payload.budgets:
        values = {k: to_money(v) for k, v in item.model_dump(exclude={"category_id"}).items()}
        obj = existing.get(item.category_id)
        if obj is None:
            obj = models.SimulationBudget(simulation_id=sim.id, category_id=item.category_id)
            db.add(obj)
        for k, v in values.items():
            setattr(obj, k, v)

    _commit(db, "[simulations] guardar presupuestos")
    db.refresh(sim)
    logger.info("[simulations] %s presupuestos guardados en %s", len(payload.budgets), sim.id)
    return sorted((budget_row(b) for b in sim.budgets), key=lambda r: (r["category_name"] or "").lower())


@router.post("/{simulation_id}/copy-from-period")
def copy_from_period(
    simulation_id: str,
    payload: CopyFromPeriodIn,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Reemplaza presupuestos (y opcionalmente ingresos) con los del periodo.
    cash y debit -> efectivo_amount; credit -> credito_amount.
    """
    sim = _get_simulation_or_404(db, simulation_id)
    period = db.get(models.Period, payload.period_id)
    if not period:
        raise HTTPException(status_code=404, detail="Periodo no encontrado")

    budgets = budgets_from_period(db, period.id)
    incomes = (
        db.query(models.Income).filter(models.Income.period_id == period.id).all()
        if payload.include_incomes
        else []
    )
    if not budgets and not incomes:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "El periodo seleccionado no contiene datos para copiar",
                "code": "EMPTY_PERIOD",
                "period": {"id": period.id, "name": period.name},
            },
        )

    if payload.include_incomes:
        sim.incomes = [models.SimulationIncome(description=i.description, amount=i.amount) for i in incomes]
    # (simulation_id, category_id) es único: borrar antes de insertar
    sim.budgets = []
    db.flush()
    sim.budgets = [
        models.SimulationBudget(
            category_id=cid,
            efectivo_amount=amounts[SIM_EFECTIVO],
            credito_amount=amounts[SIM_CREDITO],
        )
        for cid, amounts in budgets.items()
    ]
    _commit(db, "[simulations] copiar desde periodo")
    logger.info(
        "[simulations] copia desde periodo %s -> %s (%s presupuestos, %s ingresos)",
        period.id, sim.id, len(budgets), len(incomes),
    )
    return {
        "success": True,
        "simulation_id": sim.id,
        "period_id": period.id,
        "period_name": period.name,
        "budgets_copied": len(budgets),
        "incomes_copied": len(incomes),
    }


# ============================================================
# Analítica y exportación
# ============================================================

@router.get("/{simulation_id}/analytics")
def get_simulation_analytics(
    simulation_id: str,
    estudio_id: Optional[str] = Query(None),
    grouper_ids: Optional[str] = Query(None, description="Lista separada por comas"),
    payment_methods: Optional[str] = Query(None, description="efectivo,credito o all"),
    comparison_periods: int = Query(3, ge=0, le=24),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)

    methods = None
    if payment_methods and payment_methods != "all":
        methods = [m.strip() for m in payment_methods.split(",") if m.strip()]
        invalid = [m for m in methods if m not in SIM_PAYMENT_METHODS]
        if invalid or not methods:
            raise HTTPException(status_code=400, detail=f"Métodos de pago inválidos: {', '.join(invalid)}")

    estudio_pk = None
    if estudio_id:
        estudio_pk = parse_positive_int(estudio_id, "ID de estudio")
        if db.get(models.Estudio, estudio_pk) is None:
            raise HTTPException(status_code=404, detail="Estudio no encontrado")

    ids = parse_id_list(grouper_ids, "ID de agrupador")
    comparison = grouper_comparison(
        db,
        sim,
        estudio_id=estudio_pk,
        grouper_ids=ids,
        payment_methods=methods,
        comparison_periods=comparison_periods,
    )
    return {
        "summary": simulation_summary(sim),
        "subgroups": subgroup_totals(sim),
        **comparison,
        "metadata": {
            "estudio_id": estudio_pk,
            "grouper_ids": ids,
            "payment_methods": methods,
            "comparison_periods": comparison_periods,
        },
    }


SIMULATION_EXPORT_COLUMNS = [
    Column("Categoría", "category_name"),
    Column("Tipo de gasto", "tipo_gasto"),
    Column("Efectivo", "efectivo_amount", money=True),
    Column("Crédito", "credito_amount", money=True),
    Column("Total", "total_amount", money=True),
    Column("Ahorro efectivo", "ahorro_efectivo_amount", money=True),
    Column("Ahorro crédito", "ahorro_credito_amount", money=True),
    Column("Ahorro esperado", "expected_savings", money=True),
]


@router.get("/{simulation_id}/export")
def export_simulation(
    simulation_id: str,
    format: Literal["csv", "xlsx"] = Query("csv"),
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    summary = simulation_summary(sim)
    rows = list(summary["categories"])
    rows.append(
        {
            "category_name": "TOTAL",
            "efectivo_amount": summary["total_efectivo"],
            "credito_amount": summary["total_credito"],
            "total_amount": summary["total_budget"],
            "ahorro_efectivo_amount": summary["total_ahorro_efectivo"],
            "ahorro_credito_amount": summary["total_ahorro_credito"],
            "expected_savings": summary["total_expected_savings"],
        }
    )
    return export_response(
        rows,
        SIMULATION_EXPORT_COLUMNS,
        fmt=format,
        filename=f"simulacion_{sim.id}",
        sheet_name="Simulación",
    )


# ============================================================
# Subgrupos
# ============================================================

def _get_subgroup_or_404(db: Session, simulation: models.Simulation, subgroup_id: str) -> models.SimulationSubgroup:
    obj = db.get(models.SimulationSubgroup, subgroup_id)
    if not obj or obj.simulation_id != simulation.id:
        raise HTTPException(status_code=404, detail=SUBGROUP_NOT_FOUND)
    return obj


@router.get("/{simulation_id}/subgroups", response_model=List[SubgroupOut])
def list_subgroups(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_simulation_or_404(db, simulation_id).subgroups


@router.post("/{simulation_id}/subgroups", response_model=SubgroupOut, status_code=status.HTTP_201_CREATED)
def create_subgroup(
    simulation_id: str,
    payload: SubgroupCreate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    obj = models.SimulationSubgroup(
        simulation_id=sim.id,
        name=payload.name.strip(),
        display_order=payload.display_order if payload.display_order is not None else _next_order(sim.subgroups),
        category_ids=_check_categories(db, payload.category_ids),
    )
    db.add(obj)
    _commit(db, "[simulations] crear subgrupo")
    db.refresh(obj)
    return obj


@router.put("/{simulation_id}/subgroups/{subgroup_id}", response_model=SubgroupOut)
def update_subgroup(
    simulation_id: str,
    subgroup_id: str,
    payload: SubgroupUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    obj = _get_subgroup_or_404(db, sim, subgroup_id)
    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if "name" in data:
        obj.name = data["name"].strip()
    if "display_order" in data:
        obj.display_order = data["display_order"]
    if "category_ids" in data:
        obj.category_ids = _check_categories(db, data["category_ids"])
    _commit(db, "[simulations] actualizar subgrupo")
    db.refresh(obj)
    return obj


@router.delete("/{simulation_id}/subgroups/{subgroup_id}")
def delete_subgroup(
    simulation_id: str,
    subgroup_id: str,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    obj = _get_subgroup_or_404(db, sim, subgroup_id)
    db.delete(obj)
    _commit(db, "[simulations] eliminar subgrupo")
    return {"success": True, "message": "Subgrupo eliminado correctamente"}


# ============================================================
# Plantillas aplicadas a una simulación
# ============================================================

@router.post("/{simulation_id}/save-as-template", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def save_as_template(
    simulation_id: str,
    payload: SaveAsTemplateIn,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    sim = _get_simulation_or_404(db, simulation_id)
    if not sim.subgroups:
        raise HTTPException(status_code=400, detail="La simulación no tiene subgrupos para guardar como plantilla")
    name = payload.name.strip()
    _check_template_name(db, name)

    template = models.SubgroupTemplate(name=name, description=payload.description)
    template.subgroups = [
        models.TemplateSubgroup(name=sg.name, display_order=sg.display_order, category_ids=list(sg.category_ids or []))
        for sg in sim.subgroups
    ]
    db.add(template)
    _commit(db, "[simulations] guardar plantilla")
    db.refresh(template)
    logger.info("[simulations] plantilla %s creada desde %s", template.id, sim.id)
    return template


@router.post("/{simulation_id}/apply-template", response_model=List[SubgroupOut])
def apply_template(
    simulation_id: str,
    payload: ApplyTemplateIn,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    """
    Reemplaza todos los subgrupos de la simulación por los de la plantilla.
    """
    sim = _get_simulation_or_404(db, simulation_id)
    template = _get_template_or_404(db, payload.template_id)
    if not template.subgroups:
        raise HTTPException(status_code=400, detail="La plantilla no tiene subgrupos")

    sim.subgroups = [
        models.SimulationSubgroup(
            name=ts.name,
            display_order=ts.display_order,
            category_ids=list(ts.category_ids or []),
            template_subgroup_id=ts.id,
        )
        for ts in template.subgroups
    ]
    _commit(db, "[simulations] aplicar plantilla")
    db.refresh(sim)
    logger.info("[simulations] plantilla %s aplicada a %s", template.id, sim.id)
    return sim.subgroups


@router.get("/{simulation_id}/applied-template")
def get_applied_template(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    sim = _get_simulation_or_404(db, simulation_id)
    template = _applied_template(sim)
    return {
        "simulation_id": sim.id,
        "template_id": template.id if template else None,
        "template_name": template.name if template else None,
    }


@router.delete("/{simulation_id}/applied-template")
def clear_applied_template(simulation_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    Desvincula los subgrupos de la plantilla; los subgrupos se conservan.
    """
    sim = _get_simulation_or_404(db, simulation_id)
    for sg in sim.subgroups:
        sg.template_subgroup_id = None
    _commit(db, "[simulations] quitar plantilla")
    return {"success": True, "message": "Plantilla desvinculada"}


# ============================================================
# /api/subgroup-templates
# ============================================================

@templates_router.get("", response_model=List[TemplateOut])
def list_templates(db: Session = Depends(get_db), user=Depends(require_user)):
    return db.query(models.SubgroupTemplate).order_by(models.SubgroupTemplate.name.asc()).all()


@templates_router.get("/{template_id}", response_model=TemplateOut)
def get_template(template_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    return _get_template_or_404(db, template_id)


@templates_router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(payload: TemplateCreate, db: Session = Depends(get_db), user=Depends(require_user)):
    name = payload.name.strip()
    _check_template_name(db, name)
    obj = models.SubgroupTemplate(name=name, description=payload.description)
    obj.subgroups = _template_subgroups(db, payload.subgroups)
    db.add(obj)
    _commit(db, "[templates] crear")
    db.refresh(obj)
    return obj


@templates_router.put("/{template_id}", response_model=TemplateOut)
def update_template(
    template_id: str,
    payload: TemplateUpdate,
    db: Session = Depends(get_db),
    user=Depends(require_user),
):
    obj = _get_template_or_404(db, template_id)
    data = payload.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")
    if data.get("name") is not None:
        name = data["name"].strip()
        _check_template_name(db, name, exclude_id=obj.id)
        obj.name = name
    if "description" in data:
        obj.description = data["description"]
    if payload.subgroups is not None:
        _unlink_template_subgroups(db, [ts.id for ts in obj.subgroups])
        obj.subgroups = _template_subgroups(db, payload.subgroups)
    _commit(db, "[templates] actualizar")
    db.refresh(obj)
    return obj


@templates_router.delete("/{template_id}")
def delete_template(template_id: str, db: Session = Depends(get_db), user=Depends(require_user)):
    """
    Los subgrupos creados desde la plantilla quedan sin vínculo (SET NULL).
    """
    obj = _get_template_or_404(db, template_id)
    _unlink_template_subgroups(db, [ts.id for ts in obj.subgroups])
    db.delete(obj)
    _commit(db, "[templates] eliminar")
    return {"success": True, "message": "Plantilla eliminada correctamente"}
