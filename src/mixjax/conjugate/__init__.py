"""
Implements the following conjugate cluster likelihoods:
1. Normal - Normal-Inverse-Chi-Squared (univariate), see normal_inverse_chi_sq
2. Categorical - Dirichlet (fixed number of categories), see dirichlet_discrete
"""
