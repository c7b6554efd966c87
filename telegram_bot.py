import json
import logging
import os
from typing import Dict, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ApplicationBuilder, CommandHandler, ContextTypes, CallbackQueryHandler, MessageHandler, filters

from catalog import CatalogError, load_catalog
from meal_optimizer import InsufficientCategoryPool, PulpSolver, format_week, plan
from user_profile import Preferences, ProfileError, UserProfile

logger = logging.getLogger(__name__)

DATA_PATH = os.getenv("DATA_JSON", "data.json")

PROFILE_FIELDS = ["weight", "height", "age", "sex", "activity_level", "target", "wealth_level"]
PREFERENCE_LABELS = {
    "meatless": "Meatless",
    "lactose_free": "Lactose-free",
    "gluten_free": "Gluten-free",
}
PLAN_TITLES = {
    "cost_optimal": "Cheapest week",
    "calorie_optimal": "Closest to your calorie target",
}


def load_state() -> Dict:
    if os.path.exists(DATA_PATH):
        with open(DATA_PATH, "r") as f:
            return json.load(f)
    return {}

def save_state(state: Dict):
    with open(DATA_PATH, "w") as f:
        json.dump(state, f, indent=2)

def get_user(state: Dict, user_id: str) -> Dict:
    return state.setdefault(user_id, {"profile": None, "preferences": Preferences().to_dict()})


def parse_profile_text(text: str, preferences: Optional[Dict] = None) -> UserProfile:
    """'68 172 25 m low loose student' -> UserProfile"""
    tokens = text.split()
    if len(tokens) != len(PROFILE_FIELDS):
        raise ProfileError(f"Expected {len(PROFILE_FIELDS)} values: {' '.join(PROFILE_FIELDS)}")
    data = dict(zip(PROFILE_FIELDS, tokens))
    data["preferences"] = preferences or {}
    return UserProfile.from_dict(data)


def flip_preference(prefs: Dict[str, bool], key: str) -> bool:
    if key not in PREFERENCE_LABELS:
        return False
    prefs[key] = not prefs.get(key, False)
    return True


def build_preferences_keyboard(prefs: Dict[str, bool]):
    rows = []
    for key, label in PREFERENCE_LABELS.items():
        mark = "✅" if prefs.get(key) else "⬜️"
        rows.append([InlineKeyboardButton(f"{mark} {label}", callback_data=f"pref_{key}")])
    rows.append([InlineKeyboardButton("Done ✅", callback_data="pref_done")])
    return InlineKeyboardMarkup(rows)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(
        "Hi! I’m your Weekly Diet Planner Bot 🍽️\n\n"
        "• /profile – tell me about yourself\n"
        "• /preferences – meatless, lactose-free, gluten-free\n"
        "• /plan_week – get 7 days of breakfast, lunch and dinner\n"
        "• /help – see commands"
    )

async def help_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(
        "/profile – Set weight, height, age, sex, activity, goal and budget\n"
        "/preferences – Toggle dietary restrictions\n"
        "/plan_week – Plan the cheapest week and the week closest to your calorie target\n"
        "/cancel – Forget your profile"
    )

async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    u["profile"] = None
    u["preferences"] = Preferences().to_dict()
    save_state(state)
    await update.message.reply_text("Cleared your profile and preferences.")

# --- Profile ---
async def set_profile(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await update.message.reply_text(
        "Send your profile in one line:\n"
        "`weight(kg) height(cm) age sex(m/f) activity(low/moderate/high) "
        "goal(loose/gain/maintain) budget(student/average/elon_musk)`\n"
        "e.g. `68 172 25 m low loose student`",
        parse_mode="Markdown"
    )

async def set_profile_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    try:
        profile = parse_profile_text(update.message.text or "", u.get("preferences"))
    except ProfileError as e:
        await update.message.reply_text(f"Couldn't read that profile: {e}")
        return
    u["profile"] = profile.to_dict()
    save_state(state)
    await update.message.reply_text("Profile saved. Use /plan_week when you're ready.")

# --- Preferences ---
async def preferences(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    await update.message.reply_text("Toggle your dietary restrictions, then press Done.",
                                    reply_markup=build_preferences_keyboard(u["preferences"]))

async def toggle_preference(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    await query.answer()
    if query.data == "pref_done":
        await query.edit_message_text("Preferences saved.")
        return

    _, key = query.data.split("_", 1)
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    if not flip_preference(u["preferences"], key):
        logger.warning("Ignoring unknown preference toggle %r", key)
        return
    if u.get("profile"):
        u["profile"]["preferences"] = u["preferences"]
    save_state(state)
    await query.edit_message_reply_markup(reply_markup=build_preferences_keyboard(u["preferences"]))

# --- Planning ---
async def plan_week(update: Update, context: ContextTypes.DEFAULT_TYPE):
    state = load_state()
    u = get_user(state, str(update.effective_user.id))
    if not u.get("profile"):
        await update.message.reply_text("Set your profile first with /profile.")
        return

    try:
        profile = UserProfile.from_dict(u["profile"])
        plans = plan(profile, catalog=context.bot_data["catalog"], solver=context.bot_data["solver"])
    except ProfileError as e:
        await update.message.reply_text(f"Your saved profile is invalid: {e}. Send /profile again.")
        return
    except InsufficientCategoryPool as e:
        logger.error("Assembly failed for user %s: %s", update.effective_user.id, e)
        await update.message.reply_text("Something went wrong assembling your week. Please try again.")
        return

    for label, title in PLAN_TITLES.items():
        await update.message.reply_text(format_week(plans[label], title=title))
    if not any(p["feasible"] for p in plans.values()):
        await update.message.reply_text(
            "❌ No feasible plan. Try relaxing your preferences or choosing a larger budget."
        )

def main():
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO
    )
    token = os.getenv("TELEGRAM_TOKEN")
    if not token:
        raise RuntimeError("Missing TELEGRAM_TOKEN environment variable")

    try:
        catalog = load_catalog()
    except CatalogError as e:
        raise SystemExit(f"Failed to load meal catalog: {e}")

    app = ApplicationBuilder().token(token).build()
    app.bot_data["catalog"] = catalog
    app.bot_data["solver"] = PulpSolver()

    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("help", help_cmd))
    app.add_handler(CommandHandler("cancel", cancel))

    app.add_handler(CommandHandler("profile", set_profile))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, set_profile_text))

    app.add_handler(CommandHandler("preferences", preferences))
    app.add_handler(CallbackQueryHandler(toggle_preference, pattern="^pref_"))

    app.add_handler(CommandHandler("plan_week", plan_week))

    logger.info("Bot started with %d meals", len(catalog))
    app.run_polling(allowed_updates=Update.ALL_TYPES)

if __name__ == "__main__":
    main()
