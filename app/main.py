import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
from datetime import datetime

import streamlit as st

from gastos import aggregation as agg
from gastos import config
from gastos import state as ui
from gastos.domain import CATEGORIES, FilterSelection
from gastos.events import BUDGETS_CHANGED, EXPENSES_CHANGED, TEMPLATES_CHANGED
from gastos.export import expenses_to_csv, expenses_to_excel, export_filename
from gastos.filters import filter_by_period
from gastos.formatting import (
    MONTH_NAMES,
    format_money,
    format_relative_date,
    month_name,
    pluralize_expenses,
)
from gastos.functional import parse_amount, safe_category
from gastos.identity import LocalIdentityProvider
from gastos.refresh import RefreshLoop, Snapshot
from gastos.services import BudgetService, ReportService
from gastos.visualization import category_pie, daily_line, trailing_bar, user_bar

st.set_page_config(page_title="Gastos", page_icon="💸", layout="centered")
config.configure_logging()


@st.cache_resource
def get_store():
    return config.open_store()


store = get_store()

if "identity" not in st.session_state:
    st.session_state.identity = LocalIdentityProvider(store)
identity: LocalIdentityProvider = st.session_state.identity


def money(value: float) -> str:
    return f"${format_money(value)}"


def show_error(result, prefix: str) -> None:
    st.error(f"{prefix}: {result.get_error()['message']}")


def category_name(category_id: str) -> str:
    return safe_category(category_id).map(lambda cat: cat.name).get_or_else(category_id)


def category_label(category_id: str) -> str:
    return safe_category(category_id).map(lambda cat: f"{cat.emoji} {cat.name}").get_or_else(category_id)


# ---------------------------------------------------------------- login

session = identity.current_session()
if session is None:
    st.title("💸 Gastos")
    tab_in, tab_up = st.tabs(["Ingresar", "Crear cuenta"])
    with tab_in:
        with st.form("sign_in"):
            email = st.text_input("Email", key="signin_email")
            password = st.text_input("Contraseña", type="password", key="signin_password")
            if st.form_submit_button("Ingresar"):
                result = identity.sign_in(email, password)
                if result.is_left():
                    show_error(result, "No se pudo ingresar")
                else:
                    st.rerun()
    with tab_up:
        with st.form("sign_up"):
            name = st.text_input("Nombre", key="signup_name")
            email = st.text_input("Email", key="signup_email")
            password = st.text_input("Contraseña", type="password", key="signup_password")
            if st.form_submit_button("Crear cuenta"):
                result = identity.sign_up(email, password, name)
                if result.is_left():
                    show_error(result, "No se pudo crear la cuenta")
                else:
                    st.rerun()
    st.stop()


# ---------------------------------------------------------------- snapshot

if "screen" not in st.session_state:
    st.session_state.screen = ui.initial_state()

CHANGE_EVENTS = (EXPENSES_CHANGED, TEMPLATES_CHANGED, BUDGETS_CHANGED)

if "snapshot" not in st.session_state:
    st.session_state.snapshot = Snapshot(generation=0, expenses=())


def keep_snapshot(generation: int, snapshot: Snapshot) -> None:
    st.session_state.snapshot = snapshot


if "refresh" not in st.session_state:
    refresh = RefreshLoop.for_store(store, keep_snapshot)
    st.session_state.refresh = refresh
    st.session_state.detach_refresh = refresh.watch(store, CHANGE_EVENTS)
    refresh.invalidate()

asyncio.run(st.session_state.refresh.refresh_pending())

snapshot: Snapshot = st.session_state.snapshot
expenses = snapshot.expenses


def dispatch(action) -> None:
    st.session_state.screen = ui.reduce(st.session_state.screen, action)


# ---------------------------------------------------------------- sidebar

screen: ui.ScreenState = st.session_state.screen
users = agg.known_users(expenses)

with st.sidebar:
    st.markdown(f"### 👤 {session.name}")
    if st.button("Cerrar sesión"):
        identity.sign_out()
        st.session_state.detach_refresh()
        for key in ("screen", "snapshot", "refresh", "detach_refresh"):
            st.session_state.pop(key, None)
        st.rerun()

    views = {"➕ Agregar": ui.View.ADD, "📅 Gastos": ui.View.LIST, "📈 Reportes": ui.View.REPORTS}
    labels = list(views)
    chosen = st.radio("Menú", labels, index=list(views.values()).index(screen.view))
    if views[chosen] != screen.view:
        dispatch(ui.Navigate(views[chosen]))

    st.markdown("---")
    col_prev, col_next = st.columns(2)
    if col_prev.button("◀"):
        dispatch(ui.PreviousMonth())
        st.rerun()
    if col_next.button("▶"):
        dispatch(ui.NextMonth())
        st.rerun()

    month = st.selectbox("Mes", range(1, 13), index=screen.filters.month - 1,
                         format_func=lambda m: MONTH_NAMES[m - 1])
    year = st.number_input("Año", min_value=2000, max_value=2100, value=screen.filters.year, step=1)
    if (month, int(year)) != (screen.filters.month, screen.filters.year):
        dispatch(ui.SelectMonth(month, int(year)))

    user_options = [None] + [u.user_id for u in users]
    user_names = {u.user_id: u.name for u in users}
    current_user = screen.filters.user_id if screen.filters.user_id in user_options else None
    picked = st.selectbox("Usuario", user_options, index=user_options.index(current_user),
                          format_func=lambda uid: "Todos" if uid is None else user_names[uid])
    if picked != screen.filters.user_id:
        dispatch(ui.SelectUser(picked))

    if st.button("🔄 Actualizar"):
        st.session_state.refresh.invalidate()
        st.rerun()

screen = st.session_state.screen
selection: FilterSelection = screen.filters.selection()
period = filter_by_period(expenses, selection.month, selection.year, selection.user_id)


# ---------------------------------------------------------------- add

if screen.view == ui.View.ADD:
    st.title("➕ Nuevo gasto")
    period_total = agg.total(period)
    st.metric(f"Total de {month_name(selection.month, selection.year)}", money(period_total))

    with st.form("add_expense", clear_on_submit=True):
        amount = st.text_input("Monto", placeholder="0.00")
        category = st.radio(
            "Categoría",
            [c.id for c in CATEGORIES],
            format_func=category_label,
            horizontal=True,
        )
        necessary = st.toggle("Necesario")
        description = st.text_input("Descripción (opcional)")
        submitted = st.form_submit_button("Agregar gasto")

    if submitted:
        parsed = parse_amount(amount)
        if parsed.is_left():
            st.warning("Ingresá un monto válido mayor a cero.")
        else:
            result = store.insert_expense(parsed.get_or_else(None), category, session.user_id,
                                          necessary=necessary, description=description)
            if result.is_left():
                show_error(result, "No se pudo guardar el gasto")
            else:
                st.success(f"Gasto de {money(result.get_or_else(None).amount)} agregado")


# ---------------------------------------------------------------- list

elif screen.view == ui.View.LIST:
    st.title(f"📅 {month_name(selection.month, selection.year)}")
    k1, k2 = st.columns(2)
    k1.metric("Total", money(agg.total(period)))
    k2.metric("Cantidad", pluralize_expenses(agg.count(period)))

    chips = agg.by_category(period)
    if chips:
        cols = st.columns(len(chips))
        for col, ct in zip(cols, chips):
            col.metric(f"{ct.category.emoji} {ct.category.name}", money(ct.total))

    if not period:
        st.info("No hay gastos en este mes.")

    for expense in period:
        cat = safe_category(expense.category).get_or_else(None)
        if cat is None:
            continue
        with st.container(border=True):
            left, right = st.columns([4, 1])
            tag = " · ✅ Necesario" if expense.necessary else ""
            left.markdown(f"**{cat.emoji} {cat.name}** · {money(expense.amount)}{tag}")
            left.caption(f"{format_relative_date(expense.date)} · {expense.user_name}"
                         + (f" · {expense.description}" if expense.description else ""))
            if right.button("✕", key=f"del_{expense.id}"):
                result = store.delete_expense(expense.id)
                if result.is_left():
                    show_error(result, "No se pudo borrar")
                else:
                    st.rerun()
            if expense.user_id == session.user_id:
                with st.expander("Editar"):
                    with st.form(f"edit_{expense.id}"):
                        new_amount = st.text_input("Monto", value=f"{expense.amount:.2f}")
                        ids = [c.id for c in CATEGORIES]
                        new_category = st.selectbox("Categoría", ids, index=ids.index(cat.id),
                                                    format_func=category_name)
                        new_necessary = st.toggle("Necesario", value=expense.necessary)
                        new_description = st.text_input("Descripción", value=expense.description)
                        if st.form_submit_button("Guardar"):
                            result = store.update_expense(
                                expense.id,
                                amount=new_amount,
                                category=new_category,
                                necessary=new_necessary,
                                description=new_description,
                            )
                            if result.is_left():
                                show_error(result, "No se pudo actualizar")
                            else:
                                st.rerun()


# ---------------------------------------------------------------- reports

elif screen.view == ui.View.REPORTS:
    st.title("📈 Reportes")
    budgets = BudgetService(store)
    budget = budgets.budget_for(selection.month, selection.year)
    report = ReportService(window=config.TRAILING_MONTHS).monthly_report(
        expenses, selection, budget.amount if budget else None
    )["result"]

    k1, k2, k3 = st.columns(3)
    k1.metric("Total del mes", money(report["total"]), pluralize_expenses(report["count"]), delta_color="off")
    k2.metric("Necesarios", money(report["necessary"]))
    k3.metric("Innecesarios", money(report["unnecessary"]))

    st.subheader("💰 Presupuesto")
    util = report["utilization"]
    if util is None:
        st.info("Todavía no hay presupuesto para este mes.")
    else:
        st.progress(util.percent / 100, text=f"{util.percent:.0f}% de {money(budget.amount)}")
        if util.status == agg.STATUS_EXCEEDED:
            st.error(f"Presupuesto excedido por {money(util.exceeded_by)}")
        elif util.status == agg.STATUS_WARNING:
            st.warning(f"Quedan {money(util.remaining)}")
        else:
            st.success(f"Quedan {money(util.remaining)}")
    with st.form("budget_form"):
        new_budget = st.text_input("Presupuesto mensual", value=f"{budget.amount:.2f}" if budget else "")
        if st.form_submit_button("Guardar presupuesto"):
            result = budgets.set_budget(selection.month, selection.year, new_budget)
            if result.is_left():
                show_error(result, "No se pudo guardar el presupuesto")
            else:
                st.rerun()

    st.plotly_chart(category_pie(report["by_category"]), use_container_width=True)
    st.plotly_chart(daily_line(report["daily"]), use_container_width=True)
    st.plotly_chart(trailing_bar(report["trailing"]), use_container_width=True)
    st.plotly_chart(user_bar(report["by_user"], users), use_container_width=True)

    st.subheader("⬇ Exportar")
    include_description = st.checkbox("Incluir descripción")
    c1, c2 = st.columns(2)
    c1.download_button("CSV", expenses_to_csv(expenses, include_description),
                       file_name=export_filename("csv"), mime="text/csv")
    c2.download_button("Excel", expenses_to_excel(expenses, include_description),
                       file_name=export_filename("xlsx"),
                       mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")

    st.subheader("🔁 Gastos recurrentes")
    for template in snapshot.templates:
        left, right = st.columns([4, 1])
        left.markdown(f"Día {template.day_of_month}: **{category_name(template.category)}** "
                      f"{money(template.amount)} · {template.user_name}")
        if right.button("Desactivar", key=f"tpl_{template.id}"):
            result = store.deactivate_template(template.id)
            if result.is_left():
                show_error(result, "No se pudo desactivar")
            else:
                st.rerun()
    with st.form("add_template", clear_on_submit=True):
        t_amount = st.text_input("Monto")
        t_category = st.selectbox("Categoría", [c.id for c in CATEGORIES],
                                  format_func=category_name)
        t_day = st.number_input("Día del mes", min_value=1, max_value=28, value=min(datetime.now().day, 28))
        t_necessary = st.toggle("Necesario", key="tpl_necessary")
        t_description = st.text_input("Descripción", key="tpl_description")
        if st.form_submit_button("Agregar recurrente"):
            result = store.insert_template(t_amount, t_category, int(t_day), session.user_id,
                                           necessary=t_necessary, description=t_description)
            if result.is_left():
                show_error(result, "No se pudo guardar")
            else:
                st.rerun()
