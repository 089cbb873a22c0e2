"""
Synthetic churn data for testing the inference workflow.

**Usage:**
```python
from src.simulation.simulator import ChurnDataSimulator

sim = ChurnDataSimulator(n_customers=500)
raw = sim.generate_raw(random_seed=0)
```
"""

from src.simulation.simulator import ChurnDataSimulator

__all__ = ["ChurnDataSimulator"]
