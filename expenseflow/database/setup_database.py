"""
Database Setup Script
Creates all tables and seeds a demo company with a two-step approval rule
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from expenseflow.config.database import Base, SessionLocal, engine
from expenseflow.models.approval_rule import ApprovalRule, ApprovalStep
from expenseflow.models.company import Company
from expenseflow.models.profile import Profile, UserRole
from expenseflow.utils.security import get_password_hash

DEMO_PASSWORD = "password123"


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully")


def create_demo_company():
    """
    Seed "Acme" with an admin, two managers and an employee.

    The approval rule sends every claim to the employee's manager first and
    then to the finance manager, finalizing sequentially.
    """
    print("\nCreating demo company...")
    db = SessionLocal()

    try:
        if db.query(Company).filter(Company.name == "Acme").first():
            print("✓ Demo company already exists, skipping...")
            return

        company = Company(name="Acme", country="United States", default_currency="USD")
        db.add(company)
        db.flush()

        def profile(email, role, manager=None):
            p = Profile(
                company_id=company.id,
                email=email,
                hashed_password=get_password_hash(DEMO_PASSWORD),
                role=role,
                manager_id=manager.id if manager else None
            )
            db.add(p)
            db.flush()
            return p

        profile("admin@acme.com", UserRole.ADMIN)
        team_lead = profile("lead@acme.com", UserRole.MANAGER)
        finance = profile("finance@acme.com", UserRole.MANAGER)
        profile("employee@acme.com", UserRole.EMPLOYEE, manager=team_lead)

        rule = ApprovalRule(
            company_id=company.id,
            name="Default Approval Rule",
            is_manager_approver=True,
            rule_type=None
        )
        rule.steps.append(ApprovalStep(approver_id=finance.id, step_order=1))
        db.add(rule)

        db.commit()
        print("✓ Demo company 'Acme' created")

    except Exception as e:
        db.rollback()
        print(f"✗ Error creating demo company: {e}")
        raise
    finally:
        db.close()


def print_setup_summary():
    """Print login details for the seeded accounts"""
    print("\n" + "=" * 60)
    print("DEMO ACCOUNTS (password: " + DEMO_PASSWORD + ")")
    print("=" * 60)
    print("  admin@acme.com     admin    - configures users and approval rules")
    print("  lead@acme.com      manager  - direct manager of employee@acme.com")
    print("  finance@acme.com   manager  - approval step 1 after the manager")
    print("  employee@acme.com  employee - submits expenses")
    print("=" * 60)


def main():
    """Main setup function"""
    create_tables()
    create_demo_company()
    print_setup_summary()


if __name__ == "__main__":
    main()
