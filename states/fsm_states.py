# states/fsm_states.py
from aiogram.fsm.state import State, StatesGroup


class ClientStates(StatesGroup):
    choosing_services = State()
    choosing_staff = State()
    choosing_datetime = State()
    entering_details = State()
    # Waiting for the text of one contact field
    entering_detail_value = State()
    confirming = State()


class AuthStates(StatesGroup):
    login_email = State()
    login_password = State()
    signup_name = State()
    signup_email = State()
    signup_password = State()
    signup_confirm = State()


class DashboardStates(StatesGroup):
    filling_form = State()
    searching = State()
