"""Calendar and workload constants shared by the scheduling modules."""

WORK_HOURS_PER_DAY = 8
CURSOR_EPSILON = 1e-6

# Fixed public holidays as MM-DD; the last Monday of August is computed per year.
FIXED_HOLIDAYS_MMDD = (
    "01-01",
    "04-09",
    "05-01",
    "06-12",
    "08-21",
    "11-30",
    "12-25",
    "12-30",
)
