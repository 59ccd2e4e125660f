# wealthwise/main.py
import logging
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta
from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config, crud, models, reports, schemas
from .ai import Categorizer, get_categorizer
from .clock import get_now
from .database import SessionLocal, engine

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("wealthwise")

# Create tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="WealthWise API")

# -----------------------------
# CORS
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# DB dependency
# -----------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def require_user(db: Session, user_id: int) -> models.User:
    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

# -----------------------------
# Root endpoint
# -----------------------------
@app.get("/")
def root():
    return {"message": "WealthWise API is running"}

# -----------------------------
# User registration & login
# -----------------------------
@app.post("/register", response_model=schemas.UserOut, status_code=201)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    if crud.get_user_by_username(db, user.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    return crud.create_user(db, user.username, user.password, user.name)

@app.post("/login", response_model=schemas.LoginOut)
def login(credentials: schemas.UserLogin, db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    user = crud.authenticate_user(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    user, coins_awarded = crud.record_login(db, user, now)
    out = schemas.UserOut.model_validate(user).model_dump()
    return schemas.LoginOut(**out, coins_awarded=coins_awarded)

@app.get("/users/{user_id}", response_model=schemas.UserOut)
def get_profile(user_id: int, db: Session = Depends(get_db)):
    return require_user(db, user_id)

# -----------------------------
# Expenses
# -----------------------------
@app.get("/expenses/{user_id}", response_model=list[schemas.ExpenseOut])
def get_expenses(user_id: int, start_date: datetime | None = None, end_date: datetime | None = None,
                 db: Session = Depends(get_db)):
    require_user(db, user_id)
    return crud.list_expenses(db, user_id, schemas.to_naive_utc(start_date), schemas.to_naive_utc(end_date))

@app.post("/expenses", response_model=schemas.ExpenseCreated, status_code=201)
def create_expense(
    payload: schemas.ExpenseCreate,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    categorizer: Categorizer = Depends(get_categorizer),
):
    user = require_user(db, payload.user_id)

    category = payload.category or categorizer.categorize(payload.name)
    status = payload.status or categorizer.classify_tier(payload.name, category, payload.amount)

    expense, coins_awarded = crud.add_expense(
        db,
        user_id=user.id,
        name=payload.name,
        amount=payload.amount,
        category=category,
        status=status,
        payment_mode=payload.payment_mode,
        now=now,
        date=payload.date,
        notes=payload.notes,
    )
    db.refresh(user)
    return {"expense": expense, "coins_awarded": coins_awarded, "coins": user.coins}

@app.put("/expenses/{user_id}/{expense_id}", response_model=schemas.ExpenseOut)
def update_expense(user_id: int, expense_id: int, payload: schemas.ExpenseUpdate, db: Session = Depends(get_db)):
    expense = crud.get_expense(db, user_id, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    return crud.update_expense(db, expense, payload.model_dump(exclude_unset=True))

@app.delete("/expenses/{user_id}/{expense_id}")
def delete_expense(user_id: int, expense_id: int, db: Session = Depends(get_db)):
    expense = crud.get_expense(db, user_id, expense_id)
    if not expense:
        raise HTTPException(status_code=404, detail="Expense not found")
    crud.delete_expense(db, expense)
    return {"message": "Expense deleted successfully"}

# -----------------------------
# Savings
# -----------------------------
@app.get("/savings/{user_id}", response_model=list[schemas.SavingOut])
def get_savings(user_id: int, start_date: datetime | None = None, end_date: datetime | None = None,
                db: Session = Depends(get_db)):
    require_user(db, user_id)
    return crud.list_savings(db, user_id, schemas.to_naive_utc(start_date), schemas.to_naive_utc(end_date))

@app.post("/savings", response_model=schemas.SavingCreated, status_code=201)
def create_saving(payload: schemas.SavingCreate, db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    user = require_user(db, payload.user_id)
    saving, coins_awarded = crud.add_saving(
        db, user.id, payload.amount, payload.source, now, date=payload.date, notes=payload.notes
    )
    db.refresh(user)
    return {"saving": saving, "coins_awarded": coins_awarded, "coins": user.coins}

@app.delete("/savings/{user_id}/{saving_id}")
def delete_saving(user_id: int, saving_id: int, db: Session = Depends(get_db)):
    saving = crud.get_saving(db, user_id, saving_id)
    if not saving:
        raise HTTPException(status_code=404, detail="Saving not found")
    crud.delete_saving(db, saving)
    return {"message": "Saving deleted successfully"}

@app.get("/savings/weekly/{user_id}", response_model=schemas.WeeklySavingsOut)
def weekly_savings(user_id: int, weeks: int = Query(6, ge=1, le=52), db: Session = Depends(get_db),
                   now: datetime = Depends(get_now)):
    require_user(db, user_id)
    return crud.weekly_savings_overview(db, user_id, now, weeks)

@app.post("/savings/weekly/reconcile/{user_id}", response_model=schemas.ReconcileOut)
def reconcile_weekly_savings(user_id: int, week_start: datetime | None = None, db: Session = Depends(get_db),
                             now: datetime = Depends(get_now)):
    user = require_user(db, user_id)
    try:
        result = crud.reconcile_weekly_savings(db, user.id, now, schemas.to_naive_utc(week_start))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    db.refresh(user)
    return {**result, "coins": user.coins}

# -----------------------------
# Goals
# -----------------------------
@app.get("/goals/{user_id}", response_model=list[schemas.GoalOut])
def list_goals(user_id: int, db: Session = Depends(get_db)):
    require_user(db, user_id)
    return crud.list_goals(db, user_id)

@app.post("/goals", response_model=schemas.GoalOut, status_code=201)
def create_goal(goal: schemas.GoalCreate, db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    require_user(db, goal.user_id)
    return crud.create_goal(
        db, goal.user_id, goal.name, goal.target_amount, goal.target_date, now, start_date=goal.start_date
    )

@app.put("/goals/{user_id}/{goal_id}", response_model=schemas.GoalChanged)
def update_goal(user_id: int, goal_id: int, payload: schemas.GoalUpdate, db: Session = Depends(get_db),
                now: datetime = Depends(get_now)):
    goal = crud.get_goal(db, user_id, goal_id)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    goal, coins_awarded = crud.update_goal(db, goal, payload.model_dump(exclude_unset=True), now)
    user = require_user(db, user_id)
    return {"goal": goal, "coins_awarded": coins_awarded, "coins": user.coins}

@app.post("/goals/{user_id}/{goal_id}/allocate", response_model=schemas.GoalChanged)
def allocate_to_goal(user_id: int, goal_id: int, payload: schemas.GoalAllocation, db: Session = Depends(get_db),
                     now: datetime = Depends(get_now)):
    goal = crud.get_goal(db, user_id, goal_id)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    goal, coins_awarded = crud.allocate_to_goal(db, goal, payload.amount, now)
    user = require_user(db, user_id)
    return {"goal": goal, "coins_awarded": coins_awarded, "coins": user.coins}

@app.delete("/goals/{user_id}/{goal_id}")
def delete_goal(user_id: int, goal_id: int, db: Session = Depends(get_db)):
    goal = crud.get_goal(db, user_id, goal_id)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    crud.delete_goal(db, goal)
    return {"message": "Goal deleted successfully"}

# -----------------------------
# Achievements
# -----------------------------
@app.get("/achievements/{user_id}", response_model=list[schemas.AchievementOut])
def list_achievements(user_id: int, db: Session = Depends(get_db)):
    require_user(db, user_id)
    return crud.list_achievements(db, user_id)

# -----------------------------
# Predictions
# -----------------------------
@app.get("/predictions/{user_id}", response_model=list[schemas.PredictionOut])
def list_predictions(user_id: int, db: Session = Depends(get_db)):
    require_user(db, user_id)
    return crud.list_predictions(db, user_id)

@app.post("/predictions/generate/{user_id}", response_model=schemas.PredictionOut)
def generate_prediction(user_id: int, db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    require_user(db, user_id)
    prediction = crud.generate_prediction(db, user_id, now)
    if prediction is None:
        raise HTTPException(status_code=400, detail="Not enough expense data to generate prediction")
    return prediction

# -----------------------------
# Dashboard & reports
# -----------------------------
@app.get("/dashboard/summary/{user_id}")
def dashboard_summary(user_id: int, db: Session = Depends(get_db), now: datetime = Depends(get_now)):
    require_user(db, user_id)
    month_start, month_end = reports.month_bounds(now.year, now.month)
    prev_start = month_start - relativedelta(months=1)

    summary = reports.dashboard_summary(
        current_expenses=crud.list_expenses(db, user_id, month_start, month_end),
        previous_expenses=crud.list_expenses(db, user_id, prev_start, month_start),
        month_savings=crud.list_savings(db, user_id, month_start, month_end),
        goals=crud.list_goals(db, user_id),
        achievements=crud.list_achievements(db, user_id),
        now=now,
    )
    return {"summary": summary}

@app.get("/reports/monthly/{user_id}")
def monthly_report(
    user_id: int,
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    require_user(db, user_id)
    year = year or now.year
    month = month or now.month
    start, end = reports.month_bounds(year, month)
    prev_start = start - relativedelta(months=1)

    return reports.monthly_report(
        year,
        month,
        month_expenses=crud.list_expenses(db, user_id, start, end),
        previous_expenses=crud.list_expenses(db, user_id, prev_start, start),
        month_savings=crud.list_savings(db, user_id, start, end),
        goals=crud.list_goals(db, user_id),
        achievements=crud.list_achievements(db, user_id),
    )

# -----------------------------
# AI helpers
# -----------------------------
@app.post("/ai/categorize")
def categorize(payload: schemas.CategorizeIn, categorizer: Categorizer = Depends(get_categorizer)):
    return {"category": categorizer.categorize(payload.expense_name)}

@app.get("/ai/savings-tips/{user_id}")
def savings_tips(user_id: int, db: Session = Depends(get_db), now: datetime = Depends(get_now),
                 categorizer: Categorizer = Depends(get_categorizer)):
    require_user(db, user_id)
    expenses = crud.list_expenses(db, user_id, start=now - timedelta(days=30))
    return {"tips": categorizer.suggest_savings_tips(expenses)}

# -----------------------------
# Global Error Handlers
# -----------------------------
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error"}
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "Validation Error", "details": jsonable_encoder(exc.errors())}
    )

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )
