"""
Excel Verification Script

Verifies data integrity of the order export written by the Celery worker.
Run from project root: python scripts/verify.py

Version: 1.0.0
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from servesoft.core.config import get_settings
from servesoft.services.excel_manager import ExcelManager


def verify_excel() -> bool:
    """Verify Excel file integrity after simulation."""
    settings = get_settings()
    excel_file = ExcelManager.orders_file()

    print("=" * 60)
    print("🔍 EXCEL VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {excel_file}")
    print("=" * 60)

    # Check if file exists
    if not excel_file.exists():
        print("\n❌ Excel file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    # Load Excel file
    try:
        df = pd.read_excel(excel_file, engine='openpyxl')
        print("\n✅ File loaded successfully!")
    except Exception as e:
        print(f"\n❌ Could not read Excel file: {e}")
        return False

    # Statistics
    print("\n📊 STATISTICS:")
    print(f"   Total Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    # Check required columns
    missing = [col for col in ExcelManager.ORDER_COLUMNS if col not in df.columns]
    ok = not missing

    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
    else:
        print("\n✅ All export columns present")

    # Check duplicates
    for key in ('order_id', 'order_code'):
        if key in df.columns:
            duplicates = df[key].duplicated().sum()
            if duplicates > 0:
                ok = False
                print(f"⚠️ {duplicates} duplicate {key} values found!")
            else:
                print(f"✅ No duplicate {key} values")

    # Totals must add up
    money = ['subtotal', 'service_fee', 'delivery_fee', 'total_amount']
    if all(col in df.columns for col in money):
        expected = (df['subtotal'] + df['service_fee'] + df['delivery_fee']).round(2)
        mismatched = int((expected != df['total_amount'].round(2)).sum())
        if mismatched:
            ok = False
            print(f"⚠️ {mismatched} orders whose total is not subtotal + fees")
        else:
            print("✅ Every total equals subtotal + fees")

        print("\n💰 REVENUE:")
        print(f"   Total: {df['total_amount'].sum():.0f} {settings.currency}")
        print(f"   Average: {df['total_amount'].mean():.0f} {settings.currency}")

    if 'order_type' in df.columns:
        print("\n🧾 BY TYPE:")
        for order_type, count in df['order_type'].value_counts().items():
            print(f"   {order_type}: {count}")

    # Sample data
    print("\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = ['order_code', 'order_type', 'customer_name', 'total_amount']
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "⚠️ VERIFICATION FOUND PROBLEMS")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_excel() else 1)
