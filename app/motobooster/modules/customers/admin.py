from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for

from app.motobooster.docstore import DocumentStoreError, current_store
from app.motobooster.modules.accounts.models import SessionUser
from app.motobooster.modules.customers.models import ALL_TYPES, VEHICLE_TYPE_OPTIONS, CustomerRecord
from app.motobooster.modules.customers.service import (
    BulkActionFailed,
    ConfirmationRequired,
    CustomerValidationError,
    InvalidTransition,
    PermissionDenied,
    archive_customer,
    bulk_apply,
    create_customer,
    get_customer,
    hard_delete_customer,
    load_customers,
    unarchive_customer,
    update_customer,
    vehicle_types_from_form,
)
from app.motobooster.modules.customers.viewmodel import CustomerEditState, CustomerListView
from app.motobooster.rbac import require_permission, user_has_permission

bp = Blueprint("customers", __name__)

ACTION_PERMISSIONS = {
    "archive": "customers.archive",
    "unarchive": "customers.unarchive",
    "delete": "customers.delete",
}
PAST_TENSE = {"archive": "archived", "unarchive": "unarchived", "delete": "permanently deleted"}


def _current_user() -> SessionUser:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _require(permission_key: str) -> None:
    if not user_has_permission(_current_user(), permission_key):
        g.missing_permission = permission_key
        abort(403)


def _edit_state_from_form(customer: CustomerRecord | None) -> CustomerEditState:
    state = CustomerEditState.for_record(customer)
    for name in ("name", "contact", "email", "address"):
        state.set_field(name, request.form.get(name) or "")
    state.vehicle_types = set(request.form.getlist("vehicle_types"))
    return state


def _render_detail(state: CustomerEditState, status: int = 200):
    return (
        render_template(
            "admin/customers/detail.html",
            form=state,
            customer=state.customer,
            vehicle_type_options=VEHICLE_TYPE_OPTIONS,
            all_types=ALL_TYPES,
        ),
        status,
    )


def _load_or_redirect(customer_id: str):
    try:
        c = get_customer(current_store(), customer_id)
    except DocumentStoreError:
        current_app.logger.exception("Error loading customer %s", customer_id)
        flash("Failed to load customer. Please try again.", "danger")
        return None, redirect(url_for("customers.customers_list"))
    if not c:
        flash("Customer not found.", "danger")
        return None, redirect(url_for("customers.customers_list"))
    return c, None


@bp.get("/customers")
@require_permission("customers.view")
def customers_list():
    u = _current_user()
    error = None
    try:
        records = load_customers(current_store())
    except DocumentStoreError:
        current_app.logger.exception("Error loading customers")
        records = []
        error = "Failed to load customers"
    view = CustomerListView.from_args(
        records,
        request.args,
        can_view_archived=user_has_permission(u, "customers.view.archived"),
    )
    if view.select_mode and request.args.get("all") == "1":
        view.select_all_visible()
    return render_template(
        "admin/customers/list.html",
        view=view,
        customers=view.visible(),
        vehicle_type_options=VEHICLE_TYPE_OPTIONS,
        error=error,
    )


@bp.get("/customers/new")
@require_permission("customers.add")
def customers_new_get():
    return _render_detail(CustomerEditState.for_record(None))


@bp.post("/customers/new")
@require_permission("customers.add")
def customers_new_post():
    u = _current_user()
    state = _edit_state_from_form(None)
    toggle = request.form.get("toggle_type")
    if toggle:
        state.toggle_type(toggle)
        return _render_detail(state)

    payload = state.payload()
    payload["vehicle_types"] = sorted(vehicle_types_from_form(payload["vehicle_types"]))
    s = current_store()
    try:
        c = create_customer(s, payload, existing=load_customers(s), user=u)
    except CustomerValidationError as e:
        flash(str(e), "danger")
        return _render_detail(state, 400)
    except DocumentStoreError:
        current_app.logger.exception("Error saving customer")
        flash("Failed to save customer. Please try again.", "danger")
        return _render_detail(state, 500)
    flash(f"Customer {c.customer_id} saved.", "success")
    return redirect(url_for("customers.customers_list"))


@bp.get("/customers/<customer_id>")
@require_permission("customers.view")
def customer_detail(customer_id: str):
    c, resp = _load_or_redirect(customer_id)
    if resp:
        return resp
    if c.is_archived and not user_has_permission(_current_user(), "customers.view.archived"):
        flash("Customer not found.", "danger")
        return redirect(url_for("customers.customers_list"))
    return _render_detail(CustomerEditState.for_record(c))


@bp.post("/customers/<customer_id>")
@require_permission("customers.edit")
def customer_update_post(customer_id: str):
    u = _current_user()
    c, resp = _load_or_redirect(customer_id)
    if resp:
        return resp
    state = _edit_state_from_form(c)
    toggle = request.form.get("toggle_type")
    if toggle:
        state.toggle_type(toggle)
        return _render_detail(state)

    payload = state.payload()
    payload["vehicle_types"] = sorted(vehicle_types_from_form(payload["vehicle_types"]))
    try:
        update_customer(current_store(), c, payload, user=u)
    except CustomerValidationError as e:
        flash(str(e), "danger")
        return _render_detail(state, 400)
    except DocumentStoreError:
        current_app.logger.exception("Error saving customer %s", customer_id)
        flash("Failed to save customer. Please try again.", "danger")
        return _render_detail(state, 500)
    flash("Customer saved.", "success")
    return redirect(url_for("customers.customers_list"))


@bp.post("/customers/<customer_id>/archive")
@require_permission("customers.archive")
def customer_archive(customer_id: str):
    c, resp = _load_or_redirect(customer_id)
    if resp:
        return resp
    try:
        archive_customer(current_store(), c, user=_current_user())
    except DocumentStoreError:
        current_app.logger.exception("Error archiving customer %s", customer_id)
        flash("Failed to archive customer. Please try again.", "danger")
        return redirect(url_for("customers.customer_detail", customer_id=customer_id))
    flash(f"Customer {c.customer_id} archived.", "success")
    return redirect(url_for("customers.customers_list"))


@bp.post("/customers/<customer_id>/unarchive")
@require_permission("customers.unarchive")
def customer_unarchive(customer_id: str):
    c, resp = _load_or_redirect(customer_id)
    if resp:
        return resp
    try:
        unarchive_customer(current_store(), c, user=_current_user())
    except DocumentStoreError:
        current_app.logger.exception("Error unarchiving customer %s", customer_id)
        flash("Failed to unarchive customer. Please try again.", "danger")
        return redirect(url_for("customers.customer_detail", customer_id=customer_id))
    flash(f"Customer {c.customer_id} restored.", "success")
    return redirect(url_for("customers.customers_list", archived="1"))


@bp.post("/customers/<customer_id>/delete")
@require_permission("customers.delete")
def customer_delete(customer_id: str):
    c, resp = _load_or_redirect(customer_id)
    if resp:
        return resp
    if request.form.get("confirm") != "1":
        return render_template(
            "admin/customers/confirm.html",
            action="delete",
            stage=1,
            records=[c],
            form_action=url_for("customers.customer_delete", customer_id=customer_id),
            args={},
        )
    try:
        hard_delete_customer(current_store(), c, user=_current_user())
    except InvalidTransition as e:
        flash(str(e), "danger")
        return redirect(url_for("customers.customer_detail", customer_id=customer_id))
    except DocumentStoreError:
        current_app.logger.exception("Error deleting customer %s", customer_id)
        flash("Failed to delete customer. Please try again.", "danger")
        return redirect(url_for("customers.customer_detail", customer_id=customer_id))
    flash(f"Customer {c.customer_id} permanently deleted.", "success")
    return redirect(url_for("customers.customers_list", archived="1"))


@bp.post("/customers/bulk")
@require_permission("customers.view")
def customers_bulk():
    u = _current_user()
    action = (request.form.get("action") or "").strip()
    if action not in ACTION_PERMISSIONS:
        abort(400)
    _require(ACTION_PERMISSIONS[action])
    try:
        confirmations = int(request.form.get("confirm") or "0")
    except ValueError:
        confirmations = 0

    s = current_store()
    try:
        records = load_customers(s)
    except DocumentStoreError:
        current_app.logger.exception("Error loading customers for bulk %s", action)
        flash(f"Failed to {action} customers. Please try again.", "danger")
        return redirect(url_for("customers.customers_list"))

    view = CustomerListView.from_args(
        records,
        request.form,
        can_view_archived=user_has_permission(u, "customers.view.archived"),
    ).with_selection(request.form.getlist("ids"))
    chosen = view.selected_records()
    list_url = url_for("customers.customers_list", **view.to_args(select=""))
    if not chosen:
        flash("No customers selected.", "warning")
        return redirect(list_url)
    if action not in view.bulk_actions():
        flash(f"Cannot {action} the selected customers.", "warning")
        return redirect(list_url)

    try:
        done = bulk_apply(s, chosen, action, user=u, confirmations=confirmations)
    except ConfirmationRequired as e:
        return render_template(
            "admin/customers/confirm.html",
            action=action,
            stage=e.stage,
            records=chosen,
            form_action=url_for("customers.customers_bulk"),
            args=view.to_args(),
        )
    except (InvalidTransition, PermissionDenied) as e:
        flash(str(e), "danger")
        return redirect(list_url)
    except BulkActionFailed:
        flash(f"Failed to {action} customers. Please try again.", "danger")
        return redirect(list_url)
    flash(f"{len(done)} customer(s) {PAST_TENSE[action]}.", "success")
    return redirect(list_url)
