from aiogram.fsm.state import State, StatesGroup


class AnalyzeStates(StatesGroup):
    team_name = State()
    content = State()


class AddSubmissionStates(StatesGroup):
    team_name = State()
    email = State()
    project_title = State()
    drive_link = State()
    description = State()
