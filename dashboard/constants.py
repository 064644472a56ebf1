MEDIA_TABS = {
    "Movies & Series": "movies-series",
    "Books": "books",
    "All": "all",
}
MEDIA_STATUSES = ["To-do", "Pause", "In Progress", "Done", "DNF"]
STATUS_COLORS = {
    "To-do": "#8f8aa3",
    "Pause": "#d9a441",
    "In Progress": "#4f8fd6",
    "In progress": "#4f8fd6",
    "Done": "#3fa66b",
    "DNF": "#c4564f",
}
CATEGORY_ICONS = {"Movies": "🎬", "Series": "📺", "Books": "📚", "Other": "🗂️"}

HABIT_STATUSES = ["Active", "Unplanned", "Paused", "Archived"]
DEFAULT_HABIT_COLOR = "#22c55e"

TRACKING_PERIODS = ["daily", "weekly", "monthly"]
TREND_METRICS = {
    "rhr": "Resting heart rate",
    "weight": "Weight",
    "steps": "Steps",
    "sleep": "Sleep",
}

CURRENCIES = ["USD", "EUR", "BRL", "GBP"]
ALLOCATION_GROUPINGS = {"By asset": "asset", "By type": "type"}

TOGGLE_GROUP_DONE_BY_MONTH = "media.group_done_by_month"
TOGGLE_CLUSTER_RELATED = "media.cluster_related"
