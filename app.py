"""
app.py
Streamlit gym customer dashboard (staff only).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging

import pandas as pd
import streamlit as st

import auth
import config
import db
import lifecycle
import utils
from db import CustomerStore
from models import MONTHLY_DURATIONS, SESSION_PACKAGES, CompensationMode, CourseType, Status
from projector import project_all

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Gym Customer Dashboard", layout="wide")

URGENCY_COLORS = {
    "green": "color: #16a34a",
    "yellow": "color: #ca8a04",
    "orange": "color: #f97316; font-weight: 600",
    "red": "color: #dc2626; font-weight: 600",
    "gray": "color: #4b5563",
}


def init_once():
    if not st.session_state.get("_db_ready"):
        db.init_db(auth.hash_password(config.DEFAULT_ADMIN_PASSWORD))
        st.session_state._db_ready = True


def require_login(session):
    session.setdefault("logged_in", False)
    session.setdefault("username", None)
    session.setdefault("full_name", "")


def logout(session):
    session.logged_in = False
    session.username = None
    session.full_name = ""
    st.success("ออกจากระบบแล้ว")


def show_result(result: lifecycle.ActionResult):
    if result.success:
        st.success(result.message)
    else:
        st.error(result.message)
        for field_name, msgs in result.errors.items():
            for m in msgs:
                st.caption(f"⚠️ {field_name}: {m}")


def login_screen(session):
    st.title("🔐 เข้าสู่ระบบ")

    username = st.text_input("ชื่อผู้ใช้")
    password = st.text_input("รหัสผ่าน", type="password")
    if st.button("เข้าสู่ระบบ", type="primary"):
        if not username.strip() or not password:
            st.error("กรุณากรอกชื่อผู้ใช้และรหัสผ่านให้ครบถ้วน")
            return
        user = auth.login(username, password)
        if user:
            session.logged_in = True
            session.username = user["username"]
            session.full_name = user["full_name"]
            st.rerun()
        else:
            st.error("ชื่อผู้ใช้หรือรหัสผ่านไม่ถูกต้อง")


def force_change_password_screen(session):
    st.title("⚠️ เปลี่ยนรหัสผ่าน (จำเป็น)")

    st.warning("ต้องเปลี่ยนรหัสผ่านเริ่มต้นก่อนใช้งาน")
    new1 = st.text_input("รหัสผ่านใหม่", type="password")
    new2 = st.text_input("ยืนยันรหัสผ่านใหม่", type="password")

    if st.button("บันทึกรหัสผ่าน", type="primary"):
        if len(new1) < 6:
            st.error("รหัสผ่านต้องมีอย่างน้อย 6 ตัวอักษร")
            return
        if new1 != new2:
            st.error("รหัสผ่านไม่ตรงกัน")
            return
        auth.change_password(session.username, new1)
        st.success("เปลี่ยนรหัสผ่านแล้ว")
        st.rerun()


# ---------- Tables ----------

def projections_frame(projections) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "ชื่อ": p.customer.full_name,
                "เบอร์โทร": p.customer.phone or "-",
                "ประเภท": getattr(p.customer.course_type, "value", p.customer.course_type),
                "คอร์ส": p.customer.duration_or_package,
                "วันเริ่ม": p.formatted_start_date,
                "วันที่หมด": p.formatted_final_end_date,
                "วันคงเหลือ": p.remaining_days_display,
                "ครั้งคงเหลือ": p.remaining_sessions_display,
                "สถานะ": p.status_label,
                "_urgency": p.urgency,
            }
            for p in projections
        ]
    )


def render_table(projections):
    if not projections:
        st.caption("ไม่มีข้อมูลลูกค้า")
        return
    df = projections_frame(projections)
    colors = df.pop("_urgency")
    styled = df.style.apply(lambda col: [URGENCY_COLORS.get(c, "") for c in colors], subset=["วันคงเหลือ", "ครั้งคงเหลือ", "สถานะ"])
    st.dataframe(styled, use_container_width=True, hide_index=True)


def filter_projections(projections, search: str):
    s = search.strip().lower()
    if not s:
        return projections
    return [p for p in projections if s in p.customer.full_name.lower() or s in (p.customer.phone or "")]


# ---------- Forms ----------

def package_select(course_type, key: str, current: str | None = None):
    options = MONTHLY_DURATIONS if course_type == CourseType.MONTHLY else SESSION_PACKAGES
    if current and current not in options:
        options = [current] + options
    index = options.index(current) if current in options else 0
    return st.selectbox("ระยะเวลา / แพ็กเกจ", options, index=index, key=key)


def add_customer_form(store: CustomerStore):
    st.subheader("➕ เพิ่มลูกค้า")
    course_type = st.radio("ประเภทคอร์ส", [CourseType.MONTHLY, CourseType.PER_SESSION], format_func=lambda c: c.value, horizontal=True, key="add_type")
    col1, col2 = st.columns(2)
    with col1:
        full_name = st.text_input("ชื่อ-นามสกุล", key="add_name")
        phone = st.text_input("เบอร์โทร (ไม่บังคับ)", key="add_phone")
        start_date = st.date_input("วันเริ่ม", value=utils.today(), key="add_start")
    with col2:
        package = package_select(course_type, key="add_package")
        bonus = None
        if course_type == CourseType.PER_SESSION:
            bonus = st.number_input("ครั้งโบนัส", min_value=0, value=0, step=1, key="add_bonus")

    if st.button("บันทึกลูกค้า", type="primary", key="add_submit"):
        show_result(lifecycle.create_customer(store, full_name, phone, start_date, course_type, package, bonus_sessions=bonus))


def compensation_form(store: CustomerStore, projections):
    st.subheader("🎁 เพิ่มวันชดเชย")
    days = st.number_input("จำนวนวัน (1-14)", min_value=1, max_value=14, value=1, step=1, key="comp_days")
    mode = st.radio(
        "กลุ่มลูกค้า",
        [CompensationMode.ALL_ELIGIBLE, CompensationMode.SELECTED_CUSTOMERS],
        format_func=lambda m: "ลูกค้าทุกคนที่ยังไม่หมดอายุ" if m == CompensationMode.ALL_ELIGIBLE else "เลือกลูกค้า",
        key="comp_mode",
    )
    targets: list[str] = []
    if mode == CompensationMode.SELECTED_CUSTOMERS:
        labels = {f"{p.customer.full_name} ({p.status_label})": p.customer.customer_id for p in projections}
        chosen = st.multiselect("ลูกค้า", list(labels.keys()), key="comp_targets")
        targets = [labels[c] for c in chosen]

    confirm = st.checkbox("ยืนยันการเพิ่มวันชดเชย", key="comp_confirm")
    if st.button("เพิ่มวันชดเชย", disabled=not confirm, key="comp_submit"):
        show_result(lifecycle.apply_compensation(store, days, mode, targets))


def customer_detail(store: CustomerStore, p):
    c = p.customer
    st.subheader(f"👤 {c.full_name}")
    st.write(
        f"ประเภท: **{getattr(c.course_type, 'value', c.course_type)}** | คอร์ส: **{c.duration_or_package}** | "
        f"เริ่ม: **{p.formatted_start_date}** | หมดเดิม: **{p.formatted_original_end_date}** | "
        f"หมดจริง: **{p.formatted_final_end_date}** | สถานะ: **{p.status_label}**"
    )

    if c.is_per_session:
        st.write(f"ครั้งคงเหลือ: **{c.remaining_sessions or 0}** + โบนัส **{c.bonus_sessions or 0}**")
        if st.button("✅ เช็คอิน", type="primary", key=f"checkin_{c.customer_id}"):
            show_result(lifecycle.consume_session(store, c.customer_id))
        if p.formatted_check_in_history:
            st.caption("ประวัติเช็คอิน: " + ", ".join(p.formatted_check_in_history))

    edit_tab, renew_tab, delete_tab = st.tabs(["แก้ไข", "ต่ออายุคอร์ส", "ลบ"])

    with edit_tab:
        key = f"edit_{c.customer_id}"
        full_name = st.text_input("ชื่อ-นามสกุล", value=c.full_name, key=f"{key}_name")
        phone = st.text_input("เบอร์โทร", value=c.phone or "", key=f"{key}_phone")
        course_type = c.course_type if isinstance(c.course_type, CourseType) else CourseType.MONTHLY
        start_date = st.date_input("วันเริ่ม", value=c.start_date or utils.today(), key=f"{key}_start")
        package = package_select(course_type, key=f"{key}_package", current=c.duration_or_package)
        manual_end = st.date_input("วันหมดอายุ (กำหนดเอง)", value=c.manual_end_date, key=f"{key}_manual")
        comp_days = st.number_input("วันชดเชยสะสม", min_value=0, value=c.total_compensation_days, step=1, key=f"{key}_comp")
        remaining = bonus = None
        if course_type == CourseType.PER_SESSION:
            remaining = st.number_input("ครั้งคงเหลือ", min_value=0, value=c.remaining_sessions or 0, step=1, key=f"{key}_rem")
            bonus = st.number_input("ครั้งโบนัส", min_value=0, value=c.bonus_sessions or 0, step=1, key=f"{key}_bonus")
        if st.button("บันทึกการแก้ไข", key=f"{key}_submit"):
            show_result(
                lifecycle.update_customer(
                    store, c.customer_id, full_name, phone, start_date, course_type, package,
                    manual_end_date=manual_end, total_compensation_days=comp_days,
                    remaining_sessions=remaining, bonus_sessions=bonus,
                )
            )

    with renew_tab:
        key = f"renew_{c.customer_id}"
        new_type = st.radio("ประเภทคอร์สใหม่", [CourseType.MONTHLY, CourseType.PER_SESSION], format_func=lambda t: t.value, horizontal=True, key=f"{key}_type")
        new_start = st.date_input("วันเริ่มคอร์สใหม่", value=utils.today(), max_value=utils.today(), key=f"{key}_start")
        new_package = package_select(new_type, key=f"{key}_package")
        new_bonus = None
        if new_type == CourseType.PER_SESSION:
            new_bonus = st.number_input("ครั้งโบนัส", min_value=0, value=0, step=1, key=f"{key}_bonus")
        if st.button("ต่ออายุ", type="primary", key=f"{key}_submit"):
            show_result(lifecycle.renew_course(store, c.customer_id, new_start, new_type, new_package, bonus_sessions=new_bonus))

    with delete_tab:
        confirm = st.checkbox("ยืนยันการลบ", key=f"del_confirm_{c.customer_id}")
        if st.button("ลบลูกค้า", disabled=not confirm, key=f"del_{c.customer_id}"):
            show_result(lifecycle.delete_customer(store, c.customer_id))


# ---------- Pages ----------

def load_projections(store: CustomerStore):
    try:
        customers = lifecycle.list_customers(store)
    except lifecycle.CustomerError as exc:
        st.error(f"โหลดข้อมูลลูกค้าไม่สำเร็จ: {exc.message}")
        return []
    return project_all(customers, utils.today())


def dashboard_page(store: CustomerStore):
    st.header("📊 ภาพรวม")
    projections = load_projections(store)

    counts = {s: sum(1 for p in projections if p.status == s) for s in Status}
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("ลูกค้าทั้งหมด", len(projections))
    c2.metric("ใช้งาน", counts[Status.ACTIVE])
    c3.metric("ใกล้หมดอายุ", counts[Status.NEAR_EXPIRY])
    c4.metric("หมดอายุ", counts[Status.EXPIRED_BY_DATE] + counts[Status.EXPIRED_BY_SESSIONS])

    st.divider()
    st.subheader("ใกล้หมดอายุ")
    render_table([p for p in projections if p.status == Status.NEAR_EXPIRY])


def customers_page(store: CustomerStore):
    st.header("👥 จัดการลูกค้า")
    projections = load_projections(store)

    with st.expander("เพิ่มลูกค้า"):
        add_customer_form(store)
    with st.expander("เพิ่มวันชดเชย"):
        compensation_form(store, projections)

    search = st.text_input("ค้นหา (ชื่อ/เบอร์โทร)")
    shown = filter_projections(projections, search)

    all_tab, monthly_tab, session_tab = st.tabs(["ทั้งหมด", "รายเดือน", "รายครั้ง"])
    with all_tab:
        render_table(shown)
    with monthly_tab:
        render_table([p for p in shown if p.customer.course_type == CourseType.MONTHLY])
    with session_tab:
        render_table([p for p in shown if p.customer.course_type == CourseType.PER_SESSION])

    if projections:
        st.download_button(
            "ดาวน์โหลด customers.csv",
            data=utils.projections_to_csv_bytes(projections),
            file_name="customers.csv",
            mime="text/csv",
        )

    st.divider()
    options = {f"{p.customer.full_name} ({p.customer.phone or '-'})": p for p in shown}
    selected = st.selectbox("เลือกลูกค้า", ["(ไม่เลือก)"] + list(options.keys()))
    if selected != "(ไม่เลือก)":
        customer_detail(store, options[selected])


def settings_page(session):
    st.header("⚙️ ตั้งค่า")

    st.subheader("เปลี่ยนรหัสผ่าน")
    p1 = st.text_input("รหัสผ่านใหม่", type="password")
    p2 = st.text_input("ยืนยันรหัสผ่านใหม่", type="password")
    if st.button("บันทึกรหัสผ่าน", type="primary"):
        if len(p1) < 6:
            st.error("รหัสผ่านต้องมีอย่างน้อย 6 ตัวอักษร")
        elif p1 != p2:
            st.error("รหัสผ่านไม่ตรงกัน")
        else:
            auth.change_password(session.username, p1)
            st.success("เปลี่ยนรหัสผ่านแล้ว")


def main_app(session, store: CustomerStore):
    st.sidebar.title("🏋️ Gym Dashboard")
    st.sidebar.caption(f"ผู้ใช้: {session.full_name or session.username}")

    pages = ["ภาพรวม", "ลูกค้า", "ตั้งค่า"]
    if "page" not in session:
        session.page = "ลูกค้า"
    session.page = st.sidebar.radio("เมนู", pages, index=pages.index(session.page))

    if st.sidebar.button("ออกจากระบบ"):
        logout(session)
        st.rerun()

    if session.page == "ภาพรวม":
        dashboard_page(store)
    elif session.page == "ลูกค้า":
        customers_page(store)
    elif session.page == "ตั้งค่า":
        settings_page(session)


# --------- App entry ---------

def run():
    init_once()
    session = st.session_state
    require_login(session)

    if not session.logged_in:
        login_screen(session)
        return

    # Force password change on first login after DB creation
    if db.is_force_password_change():
        force_change_password_screen(session)
        return

    main_app(session, CustomerStore())


if __name__ == "__main__":
    run()
