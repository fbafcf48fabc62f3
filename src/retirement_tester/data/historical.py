import numpy as np
import pandas as pd

from ..config import ConfigurationError

FIRST_YEAR = 1926
COLUMNS = ("stocks", "bonds", "cash", "inflation")

# Annual nominal returns 1926-2023, aligned by year index.
# Stocks: S&P 500 total return. Bonds: 10-year Treasury. Cash: T-bills. Inflation: CPI.
STOCKS = (
    0.1162, 0.3749, 0.4361, -0.0842, -0.2490, -0.4334, -0.0819, 0.5399, -0.0144, 0.4767,
    0.3392, -0.3503, 0.3112, -0.0041, -0.0978, -0.1159, 0.2034, 0.3644, 0.1965, 0.3672,
    -0.0807, 0.0571, 0.0506, 0.1879, 0.3181, 0.2400, 0.1878, -0.0099, 0.5262, 0.3256,
    0.0744, -0.1046, 0.4372, 0.1198, 0.0047, 0.2689, -0.0850, 0.2280, 0.1645, 0.1245,
    -0.1006, 0.2398, 0.1106, -0.0850, 0.0401, 0.1431, 0.1898, -0.1466, -0.2647, 0.3720,
    0.2384, -0.0706, 0.0656, 0.1844, 0.3242, -0.0491, 0.2155, 0.2256, 0.0627, 0.3173,
    0.1867, 0.0525, 0.1650, 0.3148, -0.0317, 0.3049, 0.0762, 0.1008, 0.0132, 0.3758,
    0.2296, 0.3336, 0.2858, 0.2104, -0.0910, -0.1189, -0.2210, 0.2869, 0.1088, 0.0491,
    0.1579, 0.0549, -0.3700, 0.2646, 0.1506, 0.0211, 0.1600, 0.3239, 0.1369, 0.0138,
    0.1196, 0.2183, -0.0438, 0.3149, 0.1840, 0.2861, -0.1204, 0.2658
)

BONDS = (
    0.0577, 0.0430, 0.0084, 0.0342, 0.0466, -0.0231, 0.1282, 0.0179, 0.1001, 0.0714,
    0.0025, 0.0460, 0.0445, 0.0232, 0.0300, -0.0088, 0.0297, 0.0276, 0.0125, -0.0072,
    -0.0259, -0.0041, -0.0010, 0.0168, 0.0070, -0.0193, -0.0051, 0.0003, -0.0120, -0.0673,
    0.0744, -0.0527, -0.0138, 0.0109, 0.1324, 0.0370, 0.0306, 0.0172, 0.0366, -0.0183,
    0.1223, 0.0584, -0.0113, -0.0118, 0.0481, -0.0195, 0.0028, 0.0507, -0.0107, 0.0505,
    0.0095, 0.0127, 0.0191, -0.0008, 0.0143, -0.0056, -0.0117, 0.0113, -0.0007, 0.0135,
    0.0277, 0.0155, -0.0074, 0.0188, 0.0082, 0.0158, 0.2546, 0.1468, 0.1867, 0.0056,
    -0.0102, 0.1829, 0.1029, -0.0803, 0.1451, 0.0861, 0.0166, 0.1022, 0.0201, 0.0110,
    0.1321, -0.1125, 0.0594, 0.0706, 0.0569, -0.0202, 0.0895, 0.0251, 0.0065, 0.0089,
    -0.0002, 0.0984, 0.0675, -0.1112, 0.0372, -0.0102, -0.1717, 0.0385
)

CASH = (
    0.0327, 0.0311, 0.0305, 0.0458, 0.0236, 0.0107, 0.0050, 0.0015, 0.0016, 0.0017,
    0.0014, 0.0005, 0.0004, 0.0005, 0.0003, 0.0003, 0.0038, 0.0038, 0.0038, 0.0038,
    0.0094, 0.0114, 0.0118, 0.0189, 0.0234, 0.0265, 0.0228, 0.0267, 0.0153, 0.0187,
    0.0298, 0.0339, 0.0227, 0.0432, 0.0356, 0.0254, 0.0288, 0.0352, 0.0393, 0.0463,
    0.0398, 0.0502, 0.0410, 0.0592, 0.0788, 0.0587, 0.0507, 0.1038, 0.1126, 0.1228,
    0.0889, 0.0806, 0.0880, 0.0594, 0.0572, 0.0533, 0.0341, 0.0287, 0.0480, 0.0580,
    0.0560, 0.0352, 0.0303, 0.0438, 0.0526, 0.0499, 0.0473, 0.0481, 0.0443, 0.0225,
    0.0470, 0.0162, 0.0113, 0.0098, 0.0160, 0.0328, 0.0488, 0.0459, 0.0188, 0.0007,
    0.0014, 0.0005, 0.0006, 0.0010, 0.0003, 0.0002, 0.0002, 0.0003, 0.0021, 0.0088,
    0.0194, 0.0226, 0.0052, 0.0004, 0.0456, 0.0530, 0.0502, 0.0448
)

INFLATION = (
    0.0149, -0.0097, -0.0104, 0.0020, -0.0603, -0.0952, -0.1027, -0.0531, 0.0303, 0.0247,
    0.0142, 0.0309, -0.0210, -0.0048, 0.0096, 0.0572, 0.1080, 0.0629, 0.0229, 0.0228,
    0.1437, 0.0765, 0.0299, -0.0101, 0.0579, 0.0600, 0.0106, 0.0076, 0.0037, 0.0114,
    0.0067, 0.0307, 0.0276, 0.0086, 0.0158, 0.0107, 0.0122, 0.0165, 0.0119, 0.0292,
    0.0246, 0.0557, 0.0449, 0.0330, 0.0620, 0.0911, 0.1324, 0.0758, 0.0904, 0.1331,
    0.0591, 0.0392, 0.0379, 0.0113, 0.0439, 0.0435, 0.0410, 0.0461, 0.0612, 0.0306,
    0.0291, 0.0275, 0.0267, 0.0254, 0.0332, 0.0167, 0.0154, 0.0276, 0.0234, 0.0188,
    0.0334, 0.0163, 0.0270, 0.0339, 0.0256, 0.0307, 0.0168, 0.0238, 0.0340, 0.0326,
    -0.0036, 0.0164, 0.0316, 0.0214, 0.0146, 0.0076, 0.0074, 0.0212, 0.0241, 0.0184,
    0.0121, 0.0213, 0.0181, 0.0470, 0.0800, 0.0650, 0.0340, 0.0290
)


def load_history():
    """Return the bundled annual series as a DataFrame indexed by calendar year."""
    years = np.arange(FIRST_YEAR, FIRST_YEAR + len(STOCKS))
    return pd.DataFrame(
        {"stocks": STOCKS, "bonds": BONDS, "cash": CASH, "inflation": INFLATION},
        index=pd.Index(years, name="year"),
        dtype=float,
    )


def load_history_csv(path):
    """Read a substitute annual series from CSV.

    Expects a 'year' column (used as the index) plus stocks, bonds, cash and
    inflation columns holding decimal annual rates.
    """
    df = pd.read_csv(path)
    cols_lower = {c.lower().strip(): c for c in df.columns}
    missing = [c for c in ("year",) + COLUMNS if c not in cols_lower]
    if missing:
        raise ConfigurationError(f"History CSV missing columns: {missing}. Columns={list(df.columns)}")
    df = df.rename(columns={cols_lower[c]: c for c in ("year",) + COLUMNS})
    for c in COLUMNS:
        df[c] = pd.to_numeric(df[c], errors="coerce")
    df = df.dropna(subset=list(COLUMNS)).sort_values("year").set_index("year")
    if df.empty:
        raise ConfigurationError(f"History CSV {path} has no usable rows")
    return df[list(COLUMNS)].astype(float)
