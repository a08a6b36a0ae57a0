"""
Stable Kinship Example
======================

Expected living kin of Focal under stable rates, for an early and a late
year of a synthetic population with falling fertility.
"""
from matkin import SyntheticRates, compute_kinship


def main(**kwargs):
    print("=" * 70)
    print("Stable Kinship")
    print("=" * 70)

    n_ages = kwargs.get("n_ages", 101)
    start = kwargs.get("start", 1950)
    end = kwargs.get("end", 2020)

    frames = SyntheticRates(n_ages=n_ages, start=start, end=end).frames()
    result = compute_kinship(
        frames["survival"], frames["fertility"],
        stable=True, focal_year=[start, end],
    )

    summary = result.summary
    for year in (start, end):
        at_40 = summary[(summary["year"] == year) & (summary["age_focal"] == 40)]
        total = at_40["count_living"].sum()
        print(f"\nYear {year}: {total:.2f} living female kin at Focal age 40")
        for _, row in at_40.iterrows():
            print(f"  {row['kin']:>4}: {row['count_living']:.3f}")

    return result


if __name__ == "__main__":
    main()
